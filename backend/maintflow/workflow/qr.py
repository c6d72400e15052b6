from __future__ import annotations
"""QR lifecycle manager: single-use check-in / check-out tokens.

The manager writes into the caller's session but never commits. A check-in or
check-out is durable only when the caller commits the token consumption together
with the work order transition; on a denied transition the caller rolls back and
the token is unused again.
"""
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, List, Optional
from sqlalchemy import delete, select, update
from sqlalchemy.orm.attributes import set_committed_value
from maintflow.config.settings import DEFAULT_QR_EXPIRATION_MINUTES
from maintflow.constants.roles import Role, normalize_role
from maintflow.constants.statuses import QR_ELIGIBLE_STATUSES, WorkOrderStatus
from maintflow.errors import (
    NOT_FOUND, QR_ALREADY_USED, QR_EXPIRED, QR_MISMATCH, QR_NOT_ALLOWED, QR_NOT_FOUND,
    QR_SCAN_TYPE_MISMATCH, ROLE_NOT_ALLOWED, VALIDATION_ERROR, WorkflowError,
)
from maintflow.models.audit import AuditLog
from maintflow.models.org import User
from maintflow.models.qr import QRRecord
from maintflow.models.work_order import WorkOrder
from maintflow.services.audit import add_audit
from maintflow.utils.clock import Clock, SYSTEM_CLOCK
from maintflow.workflow.engine import evaluate, is_same_actor
from maintflow.workflow.types import EntityKind, OwnerType, TransitionRequest

logger = logging.getLogger(__name__)

PREPARE_FOLLOW_UP_VISIT = 'PREPARE_FOLLOW_UP_VISIT'


class QRFailure(str, Enum):
    NOT_FOUND = 'not found'
    MISMATCH = 'mismatch'
    ALREADY_USED = 'already used'
    EXPIRED = 'expired'

    @property
    def error_code(self) -> str:
        return {
            QRFailure.NOT_FOUND: QR_NOT_FOUND,
            QRFailure.MISMATCH: QR_MISMATCH,
            QRFailure.ALREADY_USED: QR_ALREADY_USED,
            QRFailure.EXPIRED: QR_EXPIRED,
        }[self]


@dataclass(frozen=True)
class QRValidation:
    ok: bool
    reason: Optional[QRFailure] = None
    scan_type: Optional[str] = None
    technician_count: Optional[int] = None
    record_id: Optional[int] = None

    def raise_for_failure(self) -> 'QRValidation':
        if not self.ok:
            raise WorkflowError(self.reason.error_code, f'QR code {self.reason.value}')
        return self


def _default_token() -> str:
    return secrets.token_urlsafe(32)


class QRLifecycleManager:
    def __init__(self, session, expiration_minutes: int = DEFAULT_QR_EXPIRATION_MINUTES, clock: Optional[Clock] = None,
                 token_factory: Optional[Callable[[], str]] = None):
        if int(expiration_minutes) < 1:
            raise ValueError('expiration_minutes must be >= 1')
        self.session = session
        self.expiration = timedelta(minutes=int(expiration_minutes))
        self.clock = clock or SYSTEM_CLOCK
        self.token_factory = token_factory or _default_token

    # ---- generate ----
    def generate(self, work_order_id, actor_id, actor_role, technician_count: Optional[int] = None,
                 scan_type: Optional[str] = None) -> QRRecord:
        if normalize_role(actor_role) != Role.SM.value:
            raise WorkflowError(ROLE_NOT_ALLOWED, 'Only the store manager can generate QR codes')
        wo = self.session.get(WorkOrder, int(work_order_id))
        if wo is None:
            raise WorkflowError(NOT_FOUND, f'Work order {work_order_id} not found')
        actor = self.session.get(User, int(actor_id))
        if actor is None or not actor.is_active or actor.store_id != wo.ticket.store_id:
            raise WorkflowError(QR_NOT_ALLOWED, 'Work order belongs to another store')
        if wo.current_status not in {s.value for s in QR_ELIGIBLE_STATUSES}:
            raise WorkflowError(QR_NOT_ALLOWED, f'No QR code can be generated in status {wo.current_status}')
        tech = self.session.get(User, wo.assigned_technician_id) if wo.assigned_technician_id else None
        if tech is None or not tech.is_active or tech.role != Role.S2.value:
            raise WorkflowError(QR_NOT_ALLOWED, 'Work order has no assigned technician')

        derived = QRRecord.SCAN_CHECKOUT if wo.current_status == WorkOrderStatus.SERVICE_IN_PROGRESS.value else QRRecord.SCAN_CHECKIN
        if scan_type is not None and str(scan_type).strip().upper() != derived:
            raise WorkflowError(QR_SCAN_TYPE_MISMATCH, f'Work order in {wo.current_status} needs a {derived} code')

        now = self.clock.now()
        if derived == QRRecord.SCAN_CHECKIN:
            self._prepare_checkin(wo, tech, actor, technician_count, now)
        elif not (wo.current_owner_type == OwnerType.VENDOR.value and is_same_actor(wo.current_owner_id, tech.id)):
            raise WorkflowError(QR_NOT_ALLOWED, 'Technician must own the work order before check-out')

        record = QRRecord(
            token=self.token_factory(),
            work_order_id=wo.id,
            scan_type=derived,
            generated_by_user_id=actor.id,
            generated_at=now,
            expires_at=now + self.expiration,
            used=False,
            technician_count=wo.declared_technician_count if derived == QRRecord.SCAN_CHECKIN else None,
        )
        self.session.add(record)
        add_audit(self.session, AuditLog.ENTITY_WORK_ORDER, wo.id, 'QR_GENERATED', prev_status=wo.current_status,
                  new_status=wo.current_status, actor_id=actor.id, ticket_id=wo.ticket_id, work_order_id=wo.id,
                  meta={'scan_type': derived, 'technician_count': record.technician_count}, when=now)
        self.session.flush()
        logger.info('QR %s generated for work order %s', derived, wo.id)
        return record

    def _prepare_checkin(self, wo: WorkOrder, tech: User, actor: User, technician_count, now: datetime) -> None:
        try:
            count = int(technician_count)
        except (TypeError, ValueError):
            count = 0
        if count < 1:
            raise WorkflowError(VALIDATION_ERROR, 'Declared technician count must be at least 1')

        follow_up = wo.current_status == WorkOrderStatus.FOLLOW_UP_REQUESTED.value
        owned_by_tech = wo.current_owner_type == OwnerType.VENDOR.value and is_same_actor(wo.current_owner_id, tech.id)
        returned_to_store = wo.current_owner_type == OwnerType.INTERNAL.value
        if not (follow_up or owned_by_tech or returned_to_store):
            raise WorkflowError(QR_NOT_ALLOWED, 'Work order is not with the technician or the store')

        wo.declared_technician_count = count
        if follow_up:
            result = evaluate(TransitionRequest(
                entity_kind=EntityKind.WORK_ORDER,
                current_status=wo.current_status,
                action=PREPARE_FOLLOW_UP_VISIT,
                actor_id=actor.id,
                actor_role=actor.role,
                current_owner_id=wo.current_owner_id,
            ))
            if not result.allowed:
                raise WorkflowError(result.error_code, result.error)
            prev = wo.current_status
            wo.current_status = result.new_status
            wo.current_owner_type = result.new_owner_type
            wo.current_owner_id = tech.id
            add_audit(self.session, AuditLog.ENTITY_WORK_ORDER, wo.id, PREPARE_FOLLOW_UP_VISIT, prev_status=prev,
                      new_status=wo.current_status, actor_id=actor.id, ticket_id=wo.ticket_id, work_order_id=wo.id, when=now)
        elif returned_to_store:
            wo.current_owner_type = OwnerType.VENDOR.value
            wo.current_owner_id = tech.id
            add_audit(self.session, AuditLog.ENTITY_WORK_ORDER, wo.id, 'TECH_COUNT_CONFIRMED', prev_status=wo.current_status,
                      new_status=wo.current_status, actor_id=actor.id, ticket_id=wo.ticket_id, work_order_id=wo.id,
                      meta={'technician_count': count}, when=now)

    # ---- validate ----
    def validate(self, token: str, work_order_id) -> QRValidation:
        """Check and consume a token; failures have no side effects."""
        record = self.session.execute(select(QRRecord).where(QRRecord.token == str(token or ''))).scalar_one_or_none()
        if record is None:
            return QRValidation(ok=False, reason=QRFailure.NOT_FOUND)
        if record.work_order_id != int(work_order_id):
            return QRValidation(ok=False, reason=QRFailure.MISMATCH)
        if record.used:
            return QRValidation(ok=False, reason=QRFailure.ALREADY_USED)
        now = self.clock.now()
        if now > record.expires_at:
            return QRValidation(ok=False, reason=QRFailure.EXPIRED)
        res = self.session.execute(
            update(QRRecord)
            .where(QRRecord.id == record.id, QRRecord.used.is_(False))
            .values(used=True, used_at=now)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            return QRValidation(ok=False, reason=QRFailure.ALREADY_USED)
        set_committed_value(record, 'used', True)
        set_committed_value(record, 'used_at', now)
        return QRValidation(ok=True, scan_type=record.scan_type, technician_count=record.technician_count, record_id=record.id)

    # ---- housekeeping ----
    def active_tokens(self, work_order_id) -> List[QRRecord]:
        now = self.clock.now()
        return list(self.session.execute(
            select(QRRecord)
            .where(QRRecord.work_order_id == int(work_order_id), QRRecord.used.is_(False), QRRecord.expires_at >= now)
            .order_by(QRRecord.id.desc())
        ).scalars())

    def purge_expired(self, older_than: Optional[datetime] = None) -> int:
        """Delete expired tokens that were never used. Used tokens stay as history."""
        cutoff = older_than or self.clock.now()
        res = self.session.execute(
            delete(QRRecord)
            .where(QRRecord.used.is_(False), QRRecord.expires_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount or 0


__all__ = ['QRLifecycleManager', 'QRValidation', 'QRFailure', 'PREPARE_FOLLOW_UP_VISIT']
