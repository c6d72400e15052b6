from __future__ import annotations
"""Work order workflow service: vendor execution, QR check-in/out, cost proposals."""
import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Optional
from maintflow.config.settings import DEFAULT_QR_EXPIRATION_MINUTES
from maintflow.constants.roles import Role, parse_role
from maintflow.constants.statuses import WorkOrderStatus
from maintflow.errors import (
    NOT_FOUND, NOT_OWNER, OWNER_NOT_FOUND, QR_SCAN_TYPE_MISMATCH, VALIDATION_ERROR, WorkflowError,
)
from maintflow.models.audit import AuditLog
from maintflow.models.org import Store, User
from maintflow.models.qr import QRRecord
from maintflow.models.ticket import Ticket
from maintflow.models.work_order import InvoiceRow, VendorPriceListItem, WorkOrder, WorkOrderVisit, WorkReportRow
from maintflow.services import directory
from maintflow.services.audit import add_audit
from maintflow.services.base import WorkflowService, actor_type_of
from maintflow.services.ticket_service import TicketService
from maintflow.utils.clock import to_naive_utc
from maintflow.workflow.qr import QRLifecycleManager
from maintflow.workflow.types import EntityKind
from maintflow.workflow.work_order_transitions import CHECKOUT_ACTIONS

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')

# a rejected work order leaves the ticket open so the AMM can pick another vendor
AUTO_ARCHIVE_STATUSES = frozenset({
    WorkOrderStatus.COST_PROPOSAL_APPROVED.value,
    WorkOrderStatus.CLOSED_WITHOUT_COST.value,
})


def _text(value) -> str:
    return str(value).strip() if value is not None else ''


def _decimal(value, field: str) -> Decimal:
    try:
        out = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise WorkflowError(VALIDATION_ERROR, f'{field} must be a number')
    if not out.is_finite():
        raise WorkflowError(VALIDATION_ERROR, f'{field} must be a number')
    return out


def _parse_eta(value) -> Optional[datetime]:
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return to_naive_utc(value)
    try:
        return to_naive_utc(datetime.fromisoformat(str(value).replace('Z', '+00:00')))
    except ValueError:
        raise WorkflowError(VALIDATION_ERROR, 'eta must be an ISO 8601 timestamp')


class WorkOrderService(WorkflowService):
    entity_kind = EntityKind.WORK_ORDER

    def __init__(self, session, clock=None, qr_expiration_minutes: int = DEFAULT_QR_EXPIRATION_MINUTES):
        super().__init__(session, clock)
        self.qr = QRLifecycleManager(session, expiration_minutes=qr_expiration_minutes, clock=self.clock)
        self.tickets = TicketService(session, clock=self.clock)

    # ---- helpers ----
    def _load(self, work_order_id) -> WorkOrder:
        return self._load_locked(WorkOrder, work_order_id, 'Work order')

    def _store(self, wo: WorkOrder) -> Store:
        ticket = self.session.get(Ticket, wo.ticket_id)
        return directory.get_store(self.session, ticket.store_id)

    def _owner_for_role(self, wo: WorkOrder, role_code: str) -> User:
        role = parse_role(role_code)
        user = None
        if role == Role.S2:
            user = directory.get_active_user(self.session, wo.assigned_technician_id)
        elif role in (Role.S1, Role.S3):
            user = directory.find_vendor_user(self.session, role, wo.vendor_company_id)
        elif role == Role.AMM:
            creator = directory.get_active_user(self.session, wo.created_by_user_id)
            if creator is not None and creator.role == Role.AMM.value:
                user = creator
            else:
                user = directory.find_internal_role_user(self.session, Role.AMM, self._store(wo))
        elif role is not None:
            user = directory.find_internal_role_user(self.session, role, self._store(wo))
        if user is None:
            raise WorkflowError(OWNER_NOT_FOUND, f'No active {role.label if role else role_code} for work order {wo.id}')
        return user

    def _transition(self, wo: WorkOrder, action: str, actor: User, *, comment: Optional[str] = None,
                    context: Optional[Dict[str, Any]] = None, meta: Optional[Dict[str, Any]] = None):
        """Evaluate and apply one work order transition (no commit)."""
        result = self._require(self._evaluate(wo.current_status, wo.current_owner_id, action, actor, context=context), action)
        if result.new_owner_role:
            owner = self._owner_for_role(wo, result.new_owner_role)
            wo.current_owner_type = result.new_owner_type
            wo.current_owner_id = owner.id
        prev = wo.current_status
        wo.current_status = result.new_status
        wo.updated_at = self.clock.now()
        add_audit(self.session, AuditLog.ENTITY_WORK_ORDER, wo.id, action, prev_status=prev, new_status=result.new_status,
                  actor_id=actor.id, actor_type=actor_type_of(actor), comment=comment, ticket_id=wo.ticket_id,
                  work_order_id=wo.id, meta=meta, when=self.clock.now())
        logger.info('Work order %s %s: %s -> %s (owner %s %s)', wo.id, action, prev, result.new_status,
                    wo.current_owner_type, wo.current_owner_id)
        if result.new_status in AUTO_ARCHIVE_STATUSES:
            self.session.flush()
            ticket = self.session.get(Ticket, wo.ticket_id)
            if self.tickets.auto_archive(ticket):
                logger.info('Ticket %s archived after last work order closed', ticket.id)
        return result

    def _simple(self, work_order_id, action: str, actor: User, comment: Optional[str] = None,
                comment_required: bool = False) -> WorkOrder:
        comment = _text(comment)
        if comment_required and not comment:
            raise WorkflowError(VALIDATION_ERROR, 'comment required')
        with self.unit_of_work():
            wo = self._load(work_order_id)
            self._transition(wo, action, actor, comment=comment or None)
        return wo

    # ---- vendor assignment ----
    def assign_technician(self, work_order_id, actor: User, technician_id, eta=None) -> WorkOrder:
        eta_value = _parse_eta(eta)
        with self.unit_of_work():
            wo = self._load(work_order_id)
            tech = directory.get_active_user(self.session, technician_id)
            if tech is None or tech.role != Role.S2.value or tech.vendor_company_id != wo.vendor_company_id:
                raise WorkflowError(VALIDATION_ERROR, 'technician must be an active technician of the vendor')
            # new owner (S2) resolves to the assigned technician
            wo.assigned_technician_id = tech.id
            self._transition(wo, 'ASSIGN_TECHNICIAN', actor, meta={'technician_id': tech.id})
            wo.eta = eta_value
        return wo

    def return_for_clarification(self, work_order_id, actor: User, comment: str) -> WorkOrder:
        return self._simple(work_order_id, 'RETURN_FOR_CLARIFICATION', actor, comment, comment_required=True)

    def resend_to_vendor(self, work_order_id, actor: User, comment_to_vendor: Optional[str] = None) -> WorkOrder:
        note = _text(comment_to_vendor)
        with self.unit_of_work():
            wo = self._load(work_order_id)
            self._transition(wo, 'RESEND_TO_VENDOR', actor, comment=note or None)
            if note:
                wo.comment_to_vendor = note
        return wo

    def reject(self, work_order_id, actor: User, reason: str) -> WorkOrder:
        return self._simple(work_order_id, 'REJECT', actor, reason, comment_required=True)

    def return_for_tech_count(self, work_order_id, actor: User, comment: Optional[str] = None) -> WorkOrder:
        return self._simple(work_order_id, 'RETURN_FOR_TECH_COUNT', actor, comment)

    def schedule_follow_up(self, work_order_id, actor: User, eta=None) -> WorkOrder:
        eta_value = _parse_eta(eta)
        with self.unit_of_work():
            wo = self._load(work_order_id)
            self._transition(wo, 'SCHEDULE_FOLLOW_UP', actor)
            if actor.vendor_company_id != wo.vendor_company_id:
                raise WorkflowError(NOT_OWNER, 'Work order belongs to another vendor')
            if eta_value is not None:
                wo.eta = eta_value
        return wo

    def record_opened(self, work_order_id, actor: User) -> WorkOrder:
        """First view by the vendor's service admin; no status change."""
        with self.unit_of_work():
            wo = self._load(work_order_id)
            if actor.role == Role.S1.value and actor.vendor_company_id == wo.vendor_company_id and wo.opened_at is None:
                wo.opened_at = self.clock.now()
                add_audit(self.session, AuditLog.ENTITY_WORK_ORDER, wo.id, 'OPENED', prev_status=wo.current_status,
                          new_status=wo.current_status, actor_id=actor.id, actor_type=actor_type_of(actor),
                          ticket_id=wo.ticket_id, work_order_id=wo.id, when=wo.opened_at)
        return wo

    # ---- QR check-in / check-out ----
    def generate_qr(self, work_order_id, actor: User, technician_count=None, scan_type: Optional[str] = None) -> QRRecord:
        with self.unit_of_work():
            self._load(work_order_id)
            record = self.qr.generate(work_order_id, actor.id, actor.role, technician_count=technician_count, scan_type=scan_type)
        return record

    def _consume(self, token: str, wo: WorkOrder, expected_scan: str):
        validation = self.qr.validate(token, wo.id).raise_for_failure()
        if validation.scan_type != expected_scan:
            raise WorkflowError(QR_SCAN_TYPE_MISMATCH, f'QR code is a {validation.scan_type} code')
        return validation

    def check_in(self, work_order_id, actor: User, token: str) -> WorkOrder:
        with self.unit_of_work():
            wo = self._load(work_order_id)
            validation = self._consume(token, wo, QRRecord.SCAN_CHECKIN)
            count = validation.technician_count or wo.declared_technician_count or 1
            self._transition(wo, 'CHECKIN', actor, context={'technician_count': count}, meta={'technician_count': count})
            now = self.clock.now()
            wo.checkin_ts = now
            wo.declared_technician_count = count
            self.session.add(WorkOrderVisit(work_order_id=wo.id, technician_id=actor.id, technician_count=count, checkin_at=now))
        return wo

    def check_out(self, work_order_id, actor: User, token: str, outcome: str, comment: Optional[str] = None,
                  work_report: Optional[Iterable[Dict[str, Any]]] = None) -> WorkOrder:
        outcome = _text(outcome).upper()
        action = CHECKOUT_ACTIONS.get(outcome)
        if action is None:
            raise WorkflowError(VALIDATION_ERROR, f'outcome must be one of {", ".join(sorted(CHECKOUT_ACTIONS))}')
        comment = _text(comment)
        if outcome != 'FIXED' and not comment:
            raise WorkflowError(VALIDATION_ERROR, 'comment required unless the repair is fixed')
        rows = self._work_report_rows(work_report)
        with self.unit_of_work():
            wo = self._load(work_order_id)
            self._consume(token, wo, QRRecord.SCAN_CHECKOUT)
            self._transition(wo, action, actor, comment=comment or None, meta={'outcome': outcome})
            now = self.clock.now()
            wo.checkout_ts = now
            visit = self._open_visit(wo)
            if visit is not None:
                visit.checkout_at = now
                visit.outcome = outcome
                visit.comment = comment or None
            for desc, hours in rows:
                self.session.add(WorkReportRow(work_order_id=wo.id, visit_id=visit.id if visit else None,
                                               description=desc, hours=hours, created_at=now))
        return wo

    def _open_visit(self, wo: WorkOrder) -> Optional[WorkOrderVisit]:
        return (self.session.query(WorkOrderVisit)
                .filter(WorkOrderVisit.work_order_id == wo.id, WorkOrderVisit.checkout_at.is_(None))
                .order_by(WorkOrderVisit.id.desc())
                .first())

    def _work_report_rows(self, work_report) -> List[tuple]:
        rows = []
        for item in work_report or []:
            desc = _text((item or {}).get('description'))
            if not desc:
                raise WorkflowError(VALIDATION_ERROR, 'work report rows need a description')
            hours = item.get('hours')
            rows.append((desc, _decimal(hours, 'hours') if hours is not None else None))
        return rows

    # ---- cost proposal ----
    def price_list(self, actor: User, vendor_company_id=None) -> List[VendorPriceListItem]:
        """Active price list of a vendor; vendor users only ever see their own."""
        if actor.is_vendor:
            vendor_company_id = actor.vendor_company_id
        if vendor_company_id is None:
            raise WorkflowError(VALIDATION_ERROR, 'vendor_company_id required')
        return (self.session.query(VendorPriceListItem)
                .filter(VendorPriceListItem.vendor_company_id == int(vendor_company_id),
                        VendorPriceListItem.is_active.is_(True))
                .order_by(VendorPriceListItem.category, VendorPriceListItem.description)
                .all())

    def submit_cost_proposal(self, work_order_id, actor: User, rows: Iterable[Dict[str, Any]], comment: Optional[str] = None) -> WorkOrder:
        parsed = self._invoice_rows(rows)
        with self.unit_of_work():
            wo = self._load(work_order_id)
            action = 'RESUBMIT_COST_PROPOSAL' if wo.current_status == WorkOrderStatus.COST_REVISION_REQUESTED.value else 'SUBMIT_COST_PROPOSAL'
            total = sum((r.line_total for r in parsed), Decimal('0'))
            self._transition(wo, action, actor, comment=_text(comment) or None, meta={'total': str(total), 'rows': len(parsed)})
            for row in parsed:
                self._check_price_list(wo, row)
            wo.invoice_rows.clear()
            wo.invoice_rows.extend(parsed)
        return wo

    def _check_price_list(self, wo: WorkOrder, row: InvoiceRow):
        if row.price_list_item_id is None:
            row.price_warning = True
            return
        item = self.session.get(VendorPriceListItem, row.price_list_item_id)
        if item is None or not item.is_active or item.vendor_company_id != wo.vendor_company_id:
            raise WorkflowError(VALIDATION_ERROR, f'Price list item {row.price_list_item_id} is not offered by this vendor')
        row.price_warning = row.unit_price > item.price_per_unit

    def _invoice_rows(self, rows) -> List[InvoiceRow]:
        out = []
        for item in rows or []:
            item = item or {}
            desc = _text(item.get('description'))
            if not desc:
                raise WorkflowError(VALIDATION_ERROR, 'invoice rows need a description')
            qty = _decimal(item.get('quantity'), 'quantity')
            price = _decimal(item.get('unit_price'), 'unit_price')
            if qty <= 0 or price < 0:
                raise WorkflowError(VALIDATION_ERROR, 'quantity must be positive and unit_price non-negative')
            item_id = item.get('price_list_item_id')
            if item_id is not None:
                try:
                    item_id = int(item_id)
                except (TypeError, ValueError):
                    raise WorkflowError(VALIDATION_ERROR, 'price_list_item_id must be an integer')
            out.append(InvoiceRow(
                description=desc,
                unit=_text(item.get('unit')) or 'pcs',
                quantity=qty,
                unit_price=price,
                line_total=(qty * price).quantize(CENT, rounding=ROUND_HALF_UP),
                price_list_item_id=item_id,
            ))
        if not out:
            raise WorkflowError(VALIDATION_ERROR, 'at least one invoice row required')
        return out

    def approve_cost_proposal(self, work_order_id, actor: User, comment: Optional[str] = None) -> WorkOrder:
        return self._simple(work_order_id, 'APPROVE_COST', actor, comment)

    def request_cost_revision(self, work_order_id, actor: User, comment: str) -> WorkOrder:
        return self._simple(work_order_id, 'REQUEST_REVISION', actor, comment, comment_required=True)

    def close_without_cost(self, work_order_id, actor: User, comment: Optional[str] = None) -> WorkOrder:
        return self._simple(work_order_id, 'CLOSE_WITHOUT_COST', actor, comment)

    # ---- reads ----
    def visible_work_orders(self, actor: User):
        q = self.session.query(WorkOrder)
        if actor.is_vendor:
            q = q.filter(WorkOrder.vendor_company_id == actor.vendor_company_id)
            if actor.role == Role.S2.value:
                q = q.filter(WorkOrder.assigned_technician_id == actor.id)
            return q
        return q.filter(WorkOrder.ticket_id.in_(self.tickets.visible_tickets(actor).with_entities(Ticket.id)))

    def get_work_order(self, work_order_id, actor: User) -> WorkOrder:
        try:
            pk = int(work_order_id)
        except (TypeError, ValueError):
            raise WorkflowError(NOT_FOUND, f'Work order {work_order_id} not found')
        wo = self.visible_work_orders(actor).filter(WorkOrder.id == pk).one_or_none()
        if wo is None:
            raise WorkflowError(NOT_FOUND, f'Work order {work_order_id} not found')
        return wo

    def list_work_orders(self, actor: User, status: Optional[str] = None, ticket_id=None, mine: bool = False):
        q = self.visible_work_orders(actor)
        if status:
            q = q.filter(WorkOrder.current_status == status)
        if ticket_id is not None:
            q = q.filter(WorkOrder.ticket_id == int(ticket_id))
        if mine:
            q = q.filter(WorkOrder.current_owner_id == actor.id)
        return q


__all__ = ['WorkOrderService']
