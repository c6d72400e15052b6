from __future__ import annotations
"""Vendor invoice batches over approved cost proposals."""
import logging
from decimal import Decimal
from typing import Iterable, List
from sqlalchemy import func, select
from maintflow.constants.roles import Role
from maintflow.constants.statuses import WorkOrderStatus
from maintflow.errors import ALREADY_BATCHED, NOT_FOUND, ROLE_NOT_ALLOWED, VALIDATION_ERROR, WorkflowError
from maintflow.models.audit import AuditLog
from maintflow.models.org import User
from maintflow.models.work_order import InvoiceBatch, InvoiceRow, WorkOrder
from maintflow.services.audit import add_audit
from maintflow.services.base import WorkflowService, actor_type_of
from maintflow.workflow.types import EntityKind

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = 'EUR'
CENT = Decimal('0.01')


def format_batch_number(year: int, vendor_company_id: int, seq: int) -> str:
    return f'BATCH-{year}-{vendor_company_id}-{seq:04d}'


class InvoiceBatchService(WorkflowService):
    entity_kind = EntityKind.WORK_ORDER

    def create_batch(self, actor: User, work_order_ids: Iterable) -> InvoiceBatch:
        """Group approved cost proposals of one vendor; all or nothing."""
        if actor.role != Role.S3.value or actor.vendor_company_id is None:
            raise WorkflowError(ROLE_NOT_ALLOWED, 'Only vendor finance can create invoice batches')
        try:
            ids: List[int] = sorted({int(i) for i in work_order_ids or []})
        except (TypeError, ValueError):
            raise WorkflowError(VALIDATION_ERROR, 'work_order_ids must be integers')
        if not ids:
            raise WorkflowError(VALIDATION_ERROR, 'work_order_ids required')
        with self.unit_of_work():
            rows = list(self.session.execute(
                select(WorkOrder).where(WorkOrder.id.in_(ids)).with_for_update().execution_options(populate_existing=True)
            ).scalars())
            found = {wo.id for wo in rows}
            missing = [i for i in ids if i not in found]
            if missing:
                raise WorkflowError(NOT_FOUND, f'Work orders not found: {missing}')
            for wo in rows:
                if wo.vendor_company_id != actor.vendor_company_id:
                    raise WorkflowError(VALIDATION_ERROR, f'Work order {wo.id} belongs to another vendor')
                if wo.current_status != WorkOrderStatus.COST_PROPOSAL_APPROVED.value:
                    raise WorkflowError(VALIDATION_ERROR, f'Work order {wo.id} has no approved cost proposal')
                if wo.invoice_batch_id is not None:
                    raise WorkflowError(ALREADY_BATCHED, f'Work order {wo.id} is already in a batch')
            now = self.clock.now()
            total = self.session.execute(
                select(func.coalesce(func.sum(InvoiceRow.line_total), 0)).where(InvoiceRow.work_order_id.in_(ids))
            ).scalar_one()
            batch = InvoiceBatch(
                batch_number=format_batch_number(now.year, actor.vendor_company_id, self._next_sequence(actor.vendor_company_id, now.year)),
                vendor_company_id=actor.vendor_company_id,
                created_by_user_id=actor.id,
                total_amount=Decimal(str(total)).quantize(CENT),
                currency=DEFAULT_CURRENCY,
                status=InvoiceBatch.STATUS_CREATED,
                created_at=now,
            )
            self.session.add(batch)
            self.session.flush()
            # version column turns a concurrent batcher into StaleDataError
            for wo in rows:
                wo.invoice_batch_id = batch.id
                add_audit(self.session, AuditLog.ENTITY_WORK_ORDER, wo.id, 'INVOICE_BATCHED', prev_status=wo.current_status,
                          new_status=wo.current_status, actor_id=actor.id, actor_type=actor_type_of(actor),
                          ticket_id=wo.ticket_id, work_order_id=wo.id, meta={'batch_number': batch.batch_number}, when=now)
        logger.info('Invoice batch %s created with %d work orders', batch.batch_number, len(ids))
        return batch

    def _next_sequence(self, vendor_company_id: int, year: int) -> int:
        prefix = f'BATCH-{year}-{vendor_company_id}-'
        count = self.session.execute(
            select(func.count(InvoiceBatch.id)).where(InvoiceBatch.batch_number.like(f'{prefix}%'))
        ).scalar_one()
        return int(count) + 1

    def list_batches(self, actor: User):
        q = self.session.query(InvoiceBatch)
        if actor.is_vendor:
            q = q.filter(InvoiceBatch.vendor_company_id == actor.vendor_company_id)
        return q.order_by(InvoiceBatch.id.desc())

    def batch_work_orders(self, batch_id) -> List[WorkOrder]:
        return list(self.session.execute(
            select(WorkOrder).where(WorkOrder.invoice_batch_id == int(batch_id)).order_by(WorkOrder.id.asc())
        ).scalars())


__all__ = ['InvoiceBatchService', 'format_batch_number']
