from __future__ import annotations
"""Ticket transition table.

Routing on SUBMIT (urgent -> AMM, otherwise AM) and the clarification requester
on SUBMIT_UPDATED are decided by the ticket service; rules without a
``new_owner_role`` leave owner selection to the caller.
"""
from typing import Any, Dict, Optional, Tuple
from maintflow.constants.roles import Role
from maintflow.constants.statuses import TicketStatus as TS
from maintflow.errors import URGENCY_MISMATCH
from maintflow.utils.fsm import TransitionRule, TransitionTable

APPROVAL_CHAIN_INCOMPLETE = 'APPROVAL_CHAIN_INCOMPLETE'


def _roles(*roles: Role):
    return frozenset(r.value for r in roles)


def _urgent_only(ctx: Dict[str, Any]) -> Optional[Tuple[str, str]]:
    if ctx.get('urgent') is not True:
        return ('Only urgent tickets can get a work order before cost approval', URGENCY_MISMATCH)
    return None


def _non_urgent_only(ctx: Dict[str, Any]) -> Optional[Tuple[str, str]]:
    if ctx.get('urgent') is not False:
        return ('Urgent tickets skip cost estimation', URGENCY_MISMATCH)
    return None


def _final_approval(ctx: Dict[str, Any]) -> Optional[Tuple[str, str]]:
    if ctx.get('next_approver_role'):
        return (f"Approval must escalate to {ctx['next_approver_role']}", APPROVAL_CHAIN_INCOMPLETE)
    return None


_CLARIFIERS = _roles(Role.AMM, Role.AM)
_CHAIN = _roles(Role.AM, Role.D, Role.C2, Role.BOD)
CLARIFICATION_RESPONDERS = _roles(Role.SM, Role.AM, Role.AMM)


def _review_rules(status: TS):
    """Rules shared by SUBMITTED and UPDATED_SUBMITTED."""
    return [
        TransitionRule(status.value, 'REQUEST_CLARIFICATION', TS.AWAITING_CREATOR_RESPONSE.value, _CLARIFIERS,
                       new_owner_role=Role.SM.value, description='Ask the creator for more information'),
        TransitionRule(status.value, 'REJECT', TS.REJECTED.value, _CLARIFIERS),
        TransitionRule(status.value, 'APPROVE_FOR_ESTIMATION', TS.COST_ESTIMATION_NEEDED.value, _roles(Role.AM),
                       new_owner_role=Role.AMM.value),
    ]


TICKET_TRANSITIONS = TransitionTable('ticket', [
    TransitionRule(TS.DRAFT.value, 'SUBMIT', TS.SUBMITTED.value, _roles(Role.SM, Role.AMM),
                   description='Urgent tickets route to AMM, others to AM'),
    *_review_rules(TS.SUBMITTED),
    TransitionRule(TS.AWAITING_CREATOR_RESPONSE.value, 'SUBMIT_UPDATED', TS.UPDATED_SUBMITTED.value, CLARIFICATION_RESPONDERS,
                   description='Answer routes back to whoever asked'),
    TransitionRule(TS.AWAITING_CREATOR_RESPONSE.value, 'SUBMIT_UPDATED_FOR_ESTIMATION', TS.COST_ESTIMATION_NEEDED.value, CLARIFICATION_RESPONDERS,
                   description='Answer to an AMM clarification on a non-urgent ticket'),
    TransitionRule(TS.AWAITING_CREATOR_RESPONSE.value, 'WITHDRAW', TS.WITHDRAWN.value, _roles(Role.SM)),
    *_review_rules(TS.UPDATED_SUBMITTED),
    TransitionRule(TS.COST_ESTIMATION_NEEDED.value, 'REQUEST_APPROVAL', TS.COST_ESTIMATION_APPROVAL_NEEDED.value, _roles(Role.AMM),
                   new_owner_role=Role.AM.value),
    TransitionRule(TS.COST_ESTIMATION_NEEDED.value, 'REQUEST_CLARIFICATION', TS.AWAITING_CREATOR_RESPONSE.value, _roles(Role.AMM),
                   new_owner_role=Role.SM.value),
    TransitionRule(TS.COST_ESTIMATION_NEEDED.value, 'REJECT', TS.REJECTED.value, _roles(Role.AMM)),
    TransitionRule(TS.COST_ESTIMATION_APPROVAL_NEEDED.value, 'APPROVE', TS.COST_ESTIMATION_APPROVED.value, _CHAIN,
                   new_owner_role=Role.AMM.value, validator=_final_approval),
    # destination owner comes from the approval chain resolver
    TransitionRule(TS.COST_ESTIMATION_APPROVAL_NEEDED.value, 'ESCALATE', TS.COST_ESTIMATION_APPROVAL_NEEDED.value,
                   _roles(Role.AM, Role.D, Role.C2)),
    TransitionRule(TS.COST_ESTIMATION_APPROVAL_NEEDED.value, 'RETURN', TS.COST_ESTIMATION_NEEDED.value, _CHAIN,
                   new_owner_role=Role.AMM.value),
    TransitionRule(TS.COST_ESTIMATION_APPROVAL_NEEDED.value, 'REJECT', TS.REJECTED.value, _CHAIN),
    TransitionRule(TS.SUBMITTED.value, 'CREATE_WORK_ORDER', TS.WORK_ORDER_IN_PROGRESS.value, _roles(Role.AMM), validator=_urgent_only),
    TransitionRule(TS.UPDATED_SUBMITTED.value, 'CREATE_WORK_ORDER', TS.WORK_ORDER_IN_PROGRESS.value, _roles(Role.AMM), validator=_urgent_only),
    TransitionRule(TS.COST_ESTIMATION_NEEDED.value, 'CREATE_WORK_ORDER', TS.WORK_ORDER_IN_PROGRESS.value, _roles(Role.AMM), validator=_urgent_only),
    TransitionRule(TS.COST_ESTIMATION_APPROVED.value, 'CREATE_WORK_ORDER', TS.WORK_ORDER_IN_PROGRESS.value, _roles(Role.AMM), validator=_non_urgent_only),
    TransitionRule(TS.WORK_ORDER_IN_PROGRESS.value, 'CREATE_WORK_ORDER', TS.WORK_ORDER_IN_PROGRESS.value, _roles(Role.AMM)),
    TransitionRule(TS.COST_ESTIMATION_APPROVED.value, 'ARCHIVE', TS.ARCHIVED.value, _roles(Role.AMM), requires_ownership=False),
    TransitionRule(TS.WORK_ORDER_IN_PROGRESS.value, 'ARCHIVE', TS.ARCHIVED.value, _roles(Role.AMM), requires_ownership=False),
    TransitionRule(TS.SUBMITTED.value, 'ARCHIVE', TS.ARCHIVED.value, _roles(Role.AMM), requires_ownership=False,
                   description='Urgent fast path'),
])

__all__ = ['TICKET_TRANSITIONS', 'APPROVAL_CHAIN_INCOMPLETE', 'CLARIFICATION_RESPONDERS']
