from __future__ import annotations
from typing import Any, Dict, Optional, Tuple
from maintflow.constants.roles import Role
from maintflow.constants.statuses import WorkOrderStatus as WS
from maintflow.utils.fsm import TransitionRule, TransitionTable

TECH_COUNT_REQUIRED = 'TECH_COUNT_REQUIRED'


def _roles(*roles: Role):
    return frozenset(r.value for r in roles)


def _declared_tech_count(ctx: Dict[str, Any]) -> Optional[Tuple[str, str]]:
    count = ctx.get('technician_count')
    if count is None:
        return None
    try:
        declared = int(count)
    except (TypeError, ValueError):
        declared = 0
    if declared < 1:
        return ('At least one technician must be declared at check-in', TECH_COUNT_REQUIRED)
    return None


_S1 = _roles(Role.S1)
_S2 = _roles(Role.S2)
_S3 = _roles(Role.S3)
_AMM = _roles(Role.AMM)

WORK_ORDER_TRANSITIONS = TransitionTable('work_order', [
    TransitionRule(WS.CREATED.value, 'ASSIGN_TECHNICIAN', WS.ACCEPTED_TECHNICIAN_ASSIGNED.value, _S1, new_owner_role=Role.S2.value),
    TransitionRule(WS.CREATED.value, 'RETURN_FOR_CLARIFICATION', WS.CREATED.value, _S1, new_owner_role=Role.AMM.value),
    TransitionRule(WS.CREATED.value, 'RESEND_TO_VENDOR', WS.CREATED.value, _AMM, new_owner_role=Role.S1.value),
    TransitionRule(WS.CREATED.value, 'REJECT', WS.REJECTED.value, _roles(Role.S1, Role.AMM), new_owner_role=Role.AMM.value),
    TransitionRule(WS.ACCEPTED_TECHNICIAN_ASSIGNED.value, 'RETURN_FOR_TECH_COUNT', WS.ACCEPTED_TECHNICIAN_ASSIGNED.value, _S2,
                   new_owner_role=Role.SM.value),
    TransitionRule(WS.ACCEPTED_TECHNICIAN_ASSIGNED.value, 'CHECKIN', WS.SERVICE_IN_PROGRESS.value, _S2, validator=_declared_tech_count),
    TransitionRule(WS.SERVICE_IN_PROGRESS.value, 'CHECKOUT_FIXED', WS.SERVICE_COMPLETED.value, _S2, new_owner_role=Role.S3.value),
    TransitionRule(WS.SERVICE_IN_PROGRESS.value, 'CHECKOUT_FOLLOW_UP', WS.FOLLOW_UP_REQUESTED.value, _S2, new_owner_role=Role.S2.value),
    TransitionRule(WS.SERVICE_IN_PROGRESS.value, 'CHECKOUT_NEW_WO_NEEDED', WS.NEW_WO_NEEDED.value, _S2, new_owner_role=Role.AMM.value),
    TransitionRule(WS.SERVICE_IN_PROGRESS.value, 'CHECKOUT_UNSUCCESSFUL', WS.REPAIR_UNSUCCESSFUL.value, _S2, new_owner_role=Role.AMM.value),
    TransitionRule(WS.SERVICE_IN_PROGRESS.value, 'SUBMIT_COST_PROPOSAL', WS.COST_PROPOSAL_PREPARED.value, _S2, new_owner_role=Role.AMM.value),
    TransitionRule(WS.SERVICE_IN_PROGRESS.value, 'CLOSE_WITHOUT_COST', WS.CLOSED_WITHOUT_COST.value, _S2),
    # technician owns a follow-up; the service admin reschedules it for the vendor
    TransitionRule(WS.FOLLOW_UP_REQUESTED.value, 'SCHEDULE_FOLLOW_UP', WS.ACCEPTED_TECHNICIAN_ASSIGNED.value, _S1,
                   requires_ownership=False, new_owner_role=Role.S2.value),
    # store prints a check-in QR for the follow-up visit
    TransitionRule(WS.FOLLOW_UP_REQUESTED.value, 'PREPARE_FOLLOW_UP_VISIT', WS.ACCEPTED_TECHNICIAN_ASSIGNED.value, _roles(Role.SM),
                   requires_ownership=False, new_owner_role=Role.S2.value),
    TransitionRule(WS.SERVICE_COMPLETED.value, 'SUBMIT_COST_PROPOSAL', WS.COST_PROPOSAL_PREPARED.value, _S3, new_owner_role=Role.AMM.value),
    TransitionRule(WS.COST_PROPOSAL_PREPARED.value, 'APPROVE_COST', WS.COST_PROPOSAL_APPROVED.value, _AMM),
    TransitionRule(WS.COST_PROPOSAL_PREPARED.value, 'REQUEST_REVISION', WS.COST_REVISION_REQUESTED.value, _AMM, new_owner_role=Role.S3.value),
    TransitionRule(WS.COST_PROPOSAL_PREPARED.value, 'REJECT', WS.REJECTED.value, _AMM),
    TransitionRule(WS.COST_PROPOSAL_PREPARED.value, 'CLOSE_WITHOUT_COST', WS.CLOSED_WITHOUT_COST.value, _AMM),
    TransitionRule(WS.COST_REVISION_REQUESTED.value, 'RESUBMIT_COST_PROPOSAL', WS.COST_PROPOSAL_PREPARED.value, _S3, new_owner_role=Role.AMM.value),
    TransitionRule(WS.NEW_WO_NEEDED.value, 'CLOSE_WITHOUT_COST', WS.CLOSED_WITHOUT_COST.value, _AMM),
    TransitionRule(WS.REPAIR_UNSUCCESSFUL.value, 'CLOSE_WITHOUT_COST', WS.CLOSED_WITHOUT_COST.value, _AMM),
])

# check-out outcome -> transition action
CHECKOUT_ACTIONS = {
    'FIXED': 'CHECKOUT_FIXED',
    'FOLLOW_UP': 'CHECKOUT_FOLLOW_UP',
    'NEW_WO_NEEDED': 'CHECKOUT_NEW_WO_NEEDED',
    'UNSUCCESSFUL': 'CHECKOUT_UNSUCCESSFUL',
}

__all__ = ['WORK_ORDER_TRANSITIONS', 'CHECKOUT_ACTIONS', 'TECH_COUNT_REQUIRED']
