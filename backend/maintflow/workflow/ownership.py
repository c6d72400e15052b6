from __future__ import annotations
"""Ticket ownership guard.

Once a ticket has work orders and is WORK_ORDER_IN_PROGRESS (or any work order is
still active), its owner is frozen: the only allowed "changes" are keeping the
current owner or clearing it as part of ARCHIVE.
"""
from typing import Iterable, Optional
from maintflow.constants.statuses import TicketStatus, is_terminal_work_order_status
from maintflow.errors import OWNERSHIP_LOCKED, WORK_ORDERS_ACTIVE
from maintflow.workflow.engine import is_same_actor
from maintflow.workflow.types import ValidationResult

ARCHIVE_ACTION = 'ARCHIVE'


def all_work_orders_terminal(statuses: Iterable[str]) -> bool:
    return all(is_terminal_work_order_status(s) for s in statuses)


def is_ownership_locked(ticket_status: str, work_order_statuses: Iterable[str]) -> bool:
    statuses = list(work_order_statuses)
    if not statuses:
        return False
    status = str(getattr(ticket_status, 'value', ticket_status))
    return status == TicketStatus.WORK_ORDER_IN_PROGRESS.value or not all_work_orders_terminal(statuses)


def check_ticket_owner_change(ticket_status: str, work_order_statuses: Iterable[str], current_owner_id: Optional[int],
                              new_owner_id: Optional[int], action: str) -> ValidationResult:
    statuses = list(work_order_statuses)
    if not is_ownership_locked(ticket_status, statuses):
        return ValidationResult.passed()
    if new_owner_id is None:
        if str(action).upper() == ARCHIVE_ACTION:
            return ValidationResult.passed()
        return ValidationResult.failed(OWNERSHIP_LOCKED, 'Ticket owner cannot be cleared while work orders are active')
    if current_owner_id is not None and is_same_actor(current_owner_id, new_owner_id):
        return ValidationResult.passed()
    return ValidationResult.failed(OWNERSHIP_LOCKED, 'Ticket owner cannot change while work orders are active')


def check_archivable(work_order_statuses: Iterable[str]) -> ValidationResult:
    if all_work_orders_terminal(work_order_statuses):
        return ValidationResult.passed()
    return ValidationResult.failed(WORK_ORDERS_ACTIVE, 'All work orders must be closed before archiving')


__all__ = ['check_ticket_owner_change', 'check_archivable', 'all_work_orders_terminal', 'is_ownership_locked']
