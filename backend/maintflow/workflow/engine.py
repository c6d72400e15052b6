from __future__ import annotations
"""State transition engine.

``evaluate`` is a pure decision function: it reads only its request and the
static tables and never touches the database. Callers apply the resulting
status/owner and write the audit entry.
"""
import math
from typing import List, Optional, Union
from maintflow.constants.roles import is_vendor_role, normalize_role
from maintflow.errors import INVALID_TRANSITION, NOT_OWNER, ROLE_NOT_ALLOWED
from maintflow.utils.fsm import TransitionRule, TransitionTable
from maintflow.workflow.ticket_transitions import TICKET_TRANSITIONS
from maintflow.workflow.types import EntityKind, OwnerType, TransitionRequest, TransitionResult
from maintflow.workflow.work_order_transitions import WORK_ORDER_TRANSITIONS


def table_for(entity_kind: Union[EntityKind, str]) -> TransitionTable:
    kind = entity_kind.value if isinstance(entity_kind, EntityKind) else str(entity_kind)
    if kind == EntityKind.TICKET.value:
        return TICKET_TRANSITIONS
    if kind == EntityKind.WORK_ORDER.value:
        return WORK_ORDER_TRANSITIONS
    raise ValueError(f'Unknown entity kind {entity_kind!r}')


def _status_value(status) -> str:
    return str(getattr(status, 'value', status))


def _as_number(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    if math.isnan(number):
        return None
    return number


def is_same_actor(owner_id, actor_id) -> bool:
    """Numeric comparison so ``'7'`` and ``7`` match; null never matches."""
    owner = _as_number(owner_id)
    actor = _as_number(actor_id)
    return owner is not None and actor is not None and owner == actor


def find_rule(entity_kind, current_status, action: str) -> Optional[TransitionRule]:
    return table_for(entity_kind).find(_status_value(current_status), str(action).strip().upper())


def evaluate(request: TransitionRequest) -> TransitionResult:
    table = table_for(request.entity_kind)
    status = _status_value(request.current_status)
    action = str(request.action or '').strip().upper()

    rule = table.find(status, action)
    if rule is None:
        return TransitionResult.deny(INVALID_TRANSITION, f'Action {action} is not allowed from status {status}')

    role = normalize_role(request.actor_role)
    if role not in rule.allowed_roles:
        return TransitionResult.deny(ROLE_NOT_ALLOWED, f'Role {role or "<none>"} cannot perform {action}')

    if rule.requires_ownership:
        if request.current_owner_id is None:
            return TransitionResult.deny(NOT_OWNER, f'{table.name} has no current owner')
        if not is_same_actor(request.current_owner_id, request.actor_id):
            return TransitionResult.deny(NOT_OWNER, 'Only the current owner can perform this action')

    if rule.validator is not None:
        failure = rule.validator(dict(request.context or {}))
        if failure:
            error, code = failure
            return TransitionResult.deny(code, error)

    new_owner_type = None
    if table is WORK_ORDER_TRANSITIONS and rule.new_owner_role:
        new_owner_type = OwnerType.VENDOR.value if is_vendor_role(rule.new_owner_role) else OwnerType.INTERNAL.value
    return TransitionResult(
        allowed=True,
        new_status=rule.to_status,
        new_owner_type=new_owner_type,
        new_owner_role=rule.new_owner_role,
    )


def valid_actions(entity_kind, current_status, actor_role: Optional[str] = None) -> List[str]:
    """Actions available from a status, optionally filtered by role (ownership not considered)."""
    rules = table_for(entity_kind).for_status(_status_value(current_status))
    if actor_role is not None:
        role = normalize_role(actor_role)
        rules = [r for r in rules if role in r.allowed_roles]
    return [r.action for r in rules]


__all__ = ['evaluate', 'find_rule', 'valid_actions', 'table_for', 'is_same_actor']
