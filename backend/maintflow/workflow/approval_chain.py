from __future__ import annotations
"""Approval chain resolver for ticket cost estimations.

Thresholds (inclusive upper bounds):
    amount <= 1000          AM
    1000 < amount <= 3000   AM -> D -> C2
    amount > 3000           AM -> D -> C2 -> BOD

The chain position is never stored; it is derived from the append-only
approval records (approvals after the most recent RETURNED record).
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional
from sqlalchemy import select
from maintflow.constants.roles import Role, normalize_role, parse_role
from maintflow.errors import APPROVER_NOT_FOUND, NOT_FOUND, VALIDATION_ERROR, WorkflowError
from maintflow.models.approval import ApprovalRecord
from maintflow.models.ticket import Ticket
from maintflow.services import directory
from maintflow.workflow.engine import is_same_actor

logger = logging.getLogger(__name__)

SINGLE_APPROVER_LIMIT = Decimal('1000')
DIRECTOR_LIMIT = Decimal('3000')

_SMALL_CHAIN = (Role.AM,)
_DIRECTOR_CHAIN = (Role.AM, Role.D, Role.C2)
_BOARD_CHAIN = (Role.AM, Role.D, Role.C2, Role.BOD)


class ApprovalChainError(WorkflowError):
    pass


@dataclass(frozen=True)
class NextApprover:
    role: str
    user_id: int
    user_name: str
    is_last: bool


def _amount(value) -> Decimal:
    try:
        amount = Decimal(str(value))
    except ArithmeticError:
        raise ApprovalChainError(VALIDATION_ERROR, f'Invalid amount {value!r}')
    if not amount.is_finite() or amount <= 0:
        raise ApprovalChainError(VALIDATION_ERROR, 'Amount must be a positive number')
    return amount


def required_approver_roles(amount) -> List[Role]:
    value = _amount(amount)
    if value <= SINGLE_APPROVER_LIMIT:
        return list(_SMALL_CHAIN)
    if value <= DIRECTOR_LIMIT:
        return list(_DIRECTOR_CHAIN)
    return list(_BOARD_CHAIN)


def next_approver_role(amount, current_role=None) -> Optional[Role]:
    """Role after ``current_role`` in the chain for ``amount``; None when it was the last step."""
    chain = required_approver_roles(amount)
    if current_role is None or normalize_role(current_role) == '':
        return chain[0]
    role = parse_role(current_role)
    if role not in chain:
        raise ApprovalChainError(VALIDATION_ERROR, f'Role {normalize_role(current_role)} is not part of the approval chain for {amount}')
    idx = chain.index(role)
    return chain[idx + 1] if idx + 1 < len(chain) else None


class ApprovalChainResolver:
    def __init__(self, session):
        self.session = session

    def _ticket(self, ticket_id) -> Ticket:
        ticket = self.session.get(Ticket, int(ticket_id))
        if ticket is None:
            raise ApprovalChainError(NOT_FOUND, f'Ticket {ticket_id} not found')
        return ticket

    def user_for_role(self, ticket: Ticket, role: Role):
        store = directory.get_store(self.session, ticket.store_id)
        if role == Role.AM:
            return directory.find_area_user(self.session, Role.AM, store.company_id, store.region_id)
        return directory.find_company_user(self.session, role, store.company_id)

    def next_approver(self, ticket_id, amount, current_approver_role=None) -> Optional[NextApprover]:
        role = next_approver_role(amount, current_approver_role)
        if role is None:
            return None
        ticket = self._ticket(ticket_id)
        user = self.user_for_role(ticket, role)
        if user is None:
            logger.warning('No active %s for ticket %s approval chain', role.value, ticket.id)
            raise ApprovalChainError(APPROVER_NOT_FOUND, f'No active {role.label} available for approval')
        chain = required_approver_roles(amount)
        return NextApprover(role=role.value, user_id=user.id, user_name=user.name, is_last=chain[-1] == role)

    def records(self, ticket_id) -> List[ApprovalRecord]:
        return list(self.session.execute(
            select(ApprovalRecord).where(ApprovalRecord.ticket_id == int(ticket_id)).order_by(ApprovalRecord.id.asc())
        ).scalars())

    def current_round(self, ticket_id) -> List[ApprovalRecord]:
        """APPROVED records since the last RETURNED record."""
        out: List[ApprovalRecord] = []
        for rec in self.records(ticket_id):
            if rec.decision == ApprovalRecord.DECISION_RETURNED:
                out = []
            elif rec.decision == ApprovalRecord.DECISION_APPROVED:
                out.append(rec)
        return out

    def expected_approver_role(self, ticket_id, amount) -> Optional[Role]:
        chain = required_approver_roles(amount)
        approved = len(self.current_round(ticket_id))
        return chain[approved] if approved < len(chain) else None

    def is_valid_approver(self, ticket: Ticket, user_id, role) -> bool:
        if ticket.cost_estimation is None:
            return False
        if not is_same_actor(ticket.current_owner_user_id, user_id):
            return False
        expected = self.expected_approver_role(ticket.id, ticket.cost_estimation.amount)
        return expected is not None and expected.value == normalize_role(role)


__all__ = [
    'ApprovalChainResolver', 'ApprovalChainError', 'NextApprover', 'required_approver_roles',
    'next_approver_role', 'SINGLE_APPROVER_LIMIT', 'DIRECTOR_LIMIT',
]
