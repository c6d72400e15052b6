from __future__ import annotations
from typing import Any, Dict, Optional
from maintflow.models.audit import AuditLog
from maintflow.utils.clock import utcnow


def add_audit(session, entity_type: str, entity_id: int, action: str, *, prev_status: Optional[str] = None,
              new_status: Optional[str] = None, actor_id: Optional[int] = None, actor_type: str = 'INTERNAL',
              comment: Optional[str] = None, ticket_id: Optional[int] = None, work_order_id: Optional[int] = None,
              meta: Optional[Dict[str, Any]] = None, when=None) -> AuditLog:
    """Append an audit entry to the given session.

    Parameters:
      entity_type: AuditLog.ENTITY_TICKET or AuditLog.ENTITY_WORK_ORDER
      action: transition action (SUBMIT, CHECKIN, ...) or an event code (QR_GENERATED)
      actor_type: INTERNAL, VENDOR or SYSTEM
      meta: additional JSON-safe dictionary (shallow copied)
    """
    log = AuditLog(
        entity_type=entity_type,
        entity_id=entity_id,
        ticket_id=ticket_id,
        work_order_id=work_order_id,
        action=action,
        prev_status=prev_status,
        new_status=new_status,
        actor_type=actor_type,
        actor_id=actor_id,
        comment=comment,
        meta=dict(meta or {}),
        created_at=when or utcnow(),
    )
    session.add(log)
    # No commit here; caller's transaction boundary controls durability.
    return log


__all__ = ['add_audit']
