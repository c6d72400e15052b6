from __future__ import annotations
"""Ticket workflow service.

Every status change goes through ``evaluate``; owner changes pass the
ownership guard first. Each public operation is one unit of work.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, Optional
from sqlalchemy import or_, select
from maintflow.constants.roles import Role, parse_role
from maintflow.constants.statuses import TicketStatus, WorkOrderStatus
from maintflow.errors import (
    NOT_APPROVER, NOT_FOUND, OWNER_NOT_FOUND, ROLE_NOT_ALLOWED, VALIDATION_ERROR, WorkflowError,
)
from maintflow.models.approval import ApprovalRecord
from maintflow.models.audit import AuditLog
from maintflow.models.org import Asset, Store, User, VendorCompany
from maintflow.models.ticket import CostEstimation, Ticket, TicketComment
from maintflow.models.work_order import WorkOrder
from maintflow.services import directory
from maintflow.services.audit import add_audit
from maintflow.services.base import WorkflowService, actor_type_of
from maintflow.workflow.approval_chain import ApprovalChainResolver, required_approver_roles
from maintflow.workflow.ownership import check_archivable, check_ticket_owner_change
from maintflow.workflow.ticket_transitions import CLARIFICATION_RESPONDERS
from maintflow.workflow.types import EntityKind

logger = logging.getLogger(__name__)

_KEEP = object()


def _text(value) -> str:
    return str(value).strip() if value is not None else ''


class TicketService(WorkflowService):
    entity_kind = EntityKind.TICKET

    def __init__(self, session, clock=None):
        super().__init__(session, clock)
        self.resolver = ApprovalChainResolver(session)

    # ---- helpers ----
    def _load(self, ticket_id) -> Ticket:
        return self._load_locked(Ticket, ticket_id, 'Ticket')

    def _store(self, ticket: Ticket) -> Store:
        return directory.get_store(self.session, ticket.store_id)

    def _region_user(self, ticket: Ticket, role: Role) -> User:
        store = self._store(ticket)
        user = directory.find_area_user(self.session, role, store.company_id, store.region_id)
        if user is None:
            raise WorkflowError(OWNER_NOT_FOUND, f'No active {role.label} for store {store.code}')
        return user

    def _transition(self, ticket: Ticket, action: str, actor: Optional[User], *, new_owner=_KEEP,
                    comment: Optional[str] = None, context: Optional[Dict[str, Any]] = None,
                    actor_role: Optional[str] = None, meta: Optional[Dict[str, Any]] = None):
        """Evaluate, guard and apply one ticket transition (no commit)."""
        ctx = {'urgent': bool(ticket.urgent)}
        ctx.update(context or {})
        result = self._require(self._evaluate(ticket.current_status, ticket.current_owner_user_id, action, actor,
                                              actor_role=actor_role, context=ctx), action)
        if new_owner is _KEEP:
            new_owner_id = ticket.current_owner_user_id
        else:
            new_owner_id = new_owner() if callable(new_owner) else new_owner
        if new_owner_id != ticket.current_owner_user_id:
            verdict = check_ticket_owner_change(ticket.current_status, self._work_order_statuses(ticket),
                                                ticket.current_owner_user_id, new_owner_id, action)
            if not verdict.ok:
                raise WorkflowError(verdict.error_code, verdict.error)
        prev = ticket.current_status
        ticket.current_status = result.new_status
        ticket.current_owner_user_id = new_owner_id
        ticket.updated_at = self.clock.now()
        add_audit(self.session, AuditLog.ENTITY_TICKET, ticket.id, action, prev_status=prev, new_status=result.new_status,
                  actor_id=actor.id if actor else None, actor_type=actor_type_of(actor), comment=comment,
                  ticket_id=ticket.id, meta=meta, when=self.clock.now())
        logger.info('Ticket %s %s: %s -> %s (owner %s)', ticket.id, action, prev, result.new_status, new_owner_id)
        return result

    def _work_order_statuses(self, ticket: Ticket):
        self.session.flush()
        return list(self.session.execute(
            select(WorkOrder.current_status).where(WorkOrder.ticket_id == ticket.id)
        ).scalars())

    def _add_comment(self, ticket: Ticket, actor: User, text: Optional[str], internal: bool = False):
        if text:
            self.session.add(TicketComment(ticket_id=ticket.id, user_id=actor.id, text=text, is_internal=internal,
                                           created_at=self.clock.now()))

    def _owner_id_for_role(self, ticket: Ticket, role: Role) -> int:
        user = directory.find_internal_role_user(self.session, role, self._store(ticket))
        if user is None:
            raise WorkflowError(OWNER_NOT_FOUND, f'No active {role.label} available')
        return user.id

    # ---- creation ----
    def create_ticket(self, actor: User, store_id, category: str, description: str, urgent: bool = False,
                      asset_id=None) -> Ticket:
        category, description = _text(category), _text(description)
        if not category or not description:
            raise WorkflowError(VALIDATION_ERROR, 'category and description required')
        with self.unit_of_work():
            store = directory.get_store(self.session, store_id)
            if store is None:
                raise WorkflowError(NOT_FOUND, f'Store {store_id} not found')
            if actor.role == Role.SM.value:
                allowed = actor.store_id == store.id
            elif actor.role == Role.AMM.value:
                allowed = actor.region_id == store.region_id
            else:
                allowed = False
            if not allowed:
                raise WorkflowError(ROLE_NOT_ALLOWED, 'Only the store manager or the area maintenance manager can open tickets')
            if asset_id is not None:
                asset = self.session.get(Asset, int(asset_id))
                if asset is None or asset.store_id != store.id:
                    raise WorkflowError(VALIDATION_ERROR, 'asset does not belong to store')
            now = self.clock.now()
            ticket = Ticket(
                company_id=store.company_id,
                store_id=store.id,
                created_by_user_id=actor.id,
                category=category,
                original_description=description,
                description=description,
                urgent=bool(urgent),
                current_status=TicketStatus.DRAFT.value,
                current_owner_user_id=actor.id,
                asset_id=int(asset_id) if asset_id is not None else None,
                created_at=now,
                updated_at=now,
            )
            self.session.add(ticket)
            self.session.flush()
            add_audit(self.session, AuditLog.ENTITY_TICKET, ticket.id, 'CREATE', new_status=ticket.current_status,
                      actor_id=actor.id, ticket_id=ticket.id, when=now)
        return ticket

    # ---- submission & clarification ----
    def submit(self, ticket_id, actor: User) -> Ticket:
        with self.unit_of_work():
            ticket = self._load(ticket_id)
            role = Role.AMM if ticket.urgent else Role.AM
            self._transition(ticket, 'SUBMIT', actor, new_owner=lambda: self._region_user(ticket, role).id,
                             meta={'routed_to': role.value})
        return ticket

    def request_clarification(self, ticket_id, actor: User, comment: str, assign_to_role: Optional[str] = None) -> Ticket:
        comment = _text(comment)
        if not comment:
            raise WorkflowError(VALIDATION_ERROR, 'comment required')
        with self.unit_of_work():
            ticket = self._load(ticket_id)
            if assign_to_role:
                role = parse_role(assign_to_role)
                if role is None or role.value not in CLARIFICATION_RESPONDERS:
                    raise WorkflowError(VALIDATION_ERROR, f'Cannot ask {assign_to_role} for clarification')
                target_id = self._owner_id_for_role(ticket, role)
            else:
                creator = directory.get_active_user(self.session, ticket.created_by_user_id)
                target_id = creator.id if creator else self._owner_id_for_role(ticket, Role.SM)
            self._transition(ticket, 'REQUEST_CLARIFICATION', actor, new_owner=target_id, comment=comment)
            ticket.clarification_requested_by_user_id = actor.id
            self._add_comment(ticket, actor, comment)
        return ticket

    def submit_updated(self, ticket_id, actor: User, comment: Optional[str] = None, description: Optional[str] = None,
                       asset_id=None) -> Ticket:
        with self.unit_of_work():
            ticket = self._load(ticket_id)
            requester = directory.get_active_user(self.session, ticket.clarification_requested_by_user_id)
            if requester is None:
                requester = self._region_user(ticket, Role.AMM if ticket.urgent else Role.AM)
            action = 'SUBMIT_UPDATED'
            if requester.role == Role.AMM.value and not ticket.urgent:
                action = 'SUBMIT_UPDATED_FOR_ESTIMATION'
            self._transition(ticket, action, actor, new_owner=requester.id, comment=_text(comment) or None,
                             meta={'routed_to': requester.role})
            ticket.clarification_requested_by_user_id = None
            if _text(description):
                ticket.description = _text(description)
            if asset_id is not None:
                asset = self.session.get(Asset, int(asset_id))
                if asset is None or asset.store_id != ticket.store_id:
                    raise WorkflowError(VALIDATION_ERROR, 'asset does not belong to store')
                ticket.asset_id = asset.id
            self._add_comment(ticket, actor, _text(comment))
        return ticket

    def approve_for_estimation(self, ticket_id, actor: User) -> Ticket:
        with self.unit_of_work():
            ticket = self._load(ticket_id)
            self._transition(ticket, 'APPROVE_FOR_ESTIMATION', actor, new_owner=lambda: self._region_user(ticket, Role.AMM).id)
        return ticket

    def reject(self, ticket_id, actor: User, reason: str) -> Ticket:
        reason = _text(reason)
        if not reason:
            raise WorkflowError(VALIDATION_ERROR, 'reason required')
        with self.unit_of_work():
            ticket = self._load(ticket_id)
            in_chain = ticket.current_status == TicketStatus.COST_ESTIMATION_APPROVAL_NEEDED.value
            self._transition(ticket, 'REJECT', actor, new_owner=None, comment=reason)
            if in_chain:
                self.session.add(ApprovalRecord(ticket_id=ticket.id, approver_user_id=actor.id, role=actor.role,
                                                decision=ApprovalRecord.DECISION_REJECTED, comment=reason,
                                                created_at=self.clock.now()))
            self._add_comment(ticket, actor, reason)
        return ticket

    def withdraw(self, ticket_id, actor: User, comment: Optional[str] = None) -> Ticket:
        with self.unit_of_work():
            ticket = self._load(ticket_id)
            self._transition(ticket, 'WITHDRAW', actor, new_owner=None, comment=_text(comment) or None)
            self._add_comment(ticket, actor, _text(comment))
        return ticket

    def add_comment(self, ticket_id, actor: User, text: str, internal: bool = False) -> TicketComment:
        text = _text(text)
        if not text:
            raise WorkflowError(VALIDATION_ERROR, 'text required')
        with self.unit_of_work():
            ticket = self.get_ticket(ticket_id, actor)
            comment = TicketComment(ticket_id=ticket.id, user_id=actor.id, text=text, is_internal=bool(internal),
                                    created_at=self.clock.now())
            self.session.add(comment)
        return comment

    # ---- cost estimation & approval chain ----
    def submit_cost_estimation(self, ticket_id, actor: User, amount, comment: Optional[str] = None) -> Ticket:
        required_approver_roles(amount)  # validates amount
        value = Decimal(str(amount))
        with self.unit_of_work():
            ticket = self._load(ticket_id)
            self._require(self._evaluate(ticket.current_status, ticket.current_owner_user_id, 'REQUEST_APPROVAL', actor),
                          'REQUEST_APPROVAL')
            first = self.resolver.next_approver(ticket.id, value)
            est = ticket.cost_estimation
            if est is None:
                est = CostEstimation(ticket_id=ticket.id, amount=value, created_by_user_id=actor.id, created_at=self.clock.now())
                self.session.add(est)
                ticket.cost_estimation = est
            else:
                est.amount = value
                est.created_by_user_id = actor.id
                est.created_at = self.clock.now()
            self._transition(ticket, 'REQUEST_APPROVAL', actor, new_owner=first.user_id,
                             comment=_text(comment) or None, meta={'amount': str(value), 'approver_role': first.role})
            self._add_comment(ticket, actor, _text(comment), internal=True)
        return ticket

    def approve_cost_estimation(self, ticket_id, actor: User, comment: Optional[str] = None) -> Ticket:
        with self.unit_of_work():
            ticket = self._load(ticket_id)
            # status, role and ownership first so engine codes take precedence
            self._require(self._evaluate(ticket.current_status, ticket.current_owner_user_id, 'APPROVE', actor), 'APPROVE')
            if not self.resolver.is_valid_approver(ticket, actor.id, actor.role):
                raise WorkflowError(NOT_APPROVER, 'Not the expected approver at this step of the chain')
            amount = ticket.cost_estimation.amount
            nxt = self.resolver.next_approver(ticket.id, amount, actor.role)
            self.session.add(ApprovalRecord(ticket_id=ticket.id, approver_user_id=actor.id, role=actor.role,
                                            decision=ApprovalRecord.DECISION_APPROVED, comment=_text(comment) or None,
                                            created_at=self.clock.now()))
            if nxt is not None:
                self._transition(ticket, 'ESCALATE', actor, new_owner=nxt.user_id, comment=_text(comment) or None,
                                 meta={'next_role': nxt.role})
            else:
                self._transition(ticket, 'APPROVE', actor, new_owner=lambda: self._region_user(ticket, Role.AMM).id, comment=_text(comment) or None,
                                 context={'next_approver_role': None})
        return ticket

    def return_cost_estimation(self, ticket_id, actor: User, comment: str) -> Ticket:
        comment = _text(comment)
        if not comment:
            raise WorkflowError(VALIDATION_ERROR, 'comment required')
        with self.unit_of_work():
            ticket = self._load(ticket_id)
            self._transition(ticket, 'RETURN', actor, new_owner=lambda: self._region_user(ticket, Role.AMM).id, comment=comment)
            self.session.add(ApprovalRecord(ticket_id=ticket.id, approver_user_id=actor.id, role=actor.role,
                                            decision=ApprovalRecord.DECISION_RETURNED, comment=comment,
                                            created_at=self.clock.now()))
            self._add_comment(ticket, actor, comment, internal=True)
        return ticket

    # ---- work orders & archive ----
    def create_work_order(self, ticket_id, actor: User, vendor_company_id, description: Optional[str] = None) -> WorkOrder:
        with self.unit_of_work():
            ticket = self._load(ticket_id)
            vendor = self.session.get(VendorCompany, int(vendor_company_id)) if vendor_company_id is not None else None
            if vendor is None or not vendor.is_active:
                raise WorkflowError(NOT_FOUND, f'Vendor {vendor_company_id} not found')
            self._transition(ticket, 'CREATE_WORK_ORDER', actor, meta={'vendor_company_id': vendor.id})
            admin = directory.find_vendor_user(self.session, Role.S1, vendor.id)
            if admin is None:
                raise WorkflowError(OWNER_NOT_FOUND, f'Vendor {vendor.name} has no active service admin')
            now = self.clock.now()
            wo = WorkOrder(
                ticket=ticket,
                vendor_company_id=vendor.id,
                created_by_user_id=actor.id,
                current_status=WorkOrderStatus.CREATED.value,
                current_owner_type=WorkOrder.OWNER_VENDOR,
                current_owner_id=admin.id,
                description=_text(description) or ticket.description,
                created_at=now,
                updated_at=now,
            )
            self.session.add(wo)
            self.session.flush()
            add_audit(self.session, AuditLog.ENTITY_WORK_ORDER, wo.id, 'CREATE', new_status=wo.current_status,
                      actor_id=actor.id, ticket_id=ticket.id, work_order_id=wo.id, when=now)
        return wo

    def archive(self, ticket_id, actor: User) -> Ticket:
        with self.unit_of_work():
            ticket = self._load(ticket_id)
            self._archive(ticket, actor)
        return ticket

    def _archive(self, ticket: Ticket, actor: Optional[User], actor_role: Optional[str] = None):
        verdict = check_archivable(self._work_order_statuses(ticket))
        if not verdict.ok:
            raise WorkflowError(verdict.error_code, verdict.error)
        self._transition(ticket, 'ARCHIVE', actor, new_owner=None, actor_role=actor_role)
        ticket.archived = True

    def auto_archive(self, ticket: Ticket) -> bool:
        """Archive a work-order ticket once every work order is terminal (no commit)."""
        if ticket.current_status != TicketStatus.WORK_ORDER_IN_PROGRESS.value:
            return False
        statuses = self._work_order_statuses(ticket)
        if not statuses or not check_archivable(statuses).ok:
            return False
        self._archive(ticket, None, actor_role=Role.AMM.value)
        return True

    def try_auto_archive(self, ticket_id) -> bool:
        with self.unit_of_work():
            archived = self.auto_archive(self._load(ticket_id))
        return archived

    # ---- reads ----
    def visible_tickets(self, actor: User):
        q = self.session.query(Ticket)
        if actor.is_vendor:
            return q.filter(Ticket.id.in_(
                select(WorkOrder.ticket_id).where(WorkOrder.vendor_company_id == actor.vendor_company_id)
            ))
        if actor.role == Role.SM.value:
            return q.filter(or_(Ticket.store_id == actor.store_id, Ticket.created_by_user_id == actor.id))
        if actor.role in (Role.AM.value, Role.AMM.value):
            return q.join(Store, Store.id == Ticket.store_id).filter(Store.region_id == actor.region_id)
        return q.filter(Ticket.company_id == actor.company_id)

    def get_ticket(self, ticket_id, actor: User) -> Ticket:
        try:
            pk = int(ticket_id)
        except (TypeError, ValueError):
            raise WorkflowError(NOT_FOUND, f'Ticket {ticket_id} not found')
        ticket = self.visible_tickets(actor).filter(Ticket.id == pk).one_or_none()
        if ticket is None:
            raise WorkflowError(NOT_FOUND, f'Ticket {ticket_id} not found')
        return ticket

    def list_tickets(self, actor: User, status: Optional[str] = None, urgent: Optional[bool] = None,
                     mine: bool = False, include_archived: bool = False):
        q = self.visible_tickets(actor)
        if status:
            q = q.filter(Ticket.current_status == status)
        if urgent is not None:
            q = q.filter(Ticket.urgent.is_(bool(urgent)))
        if mine:
            q = q.filter(Ticket.current_owner_user_id == actor.id)
        if not include_archived:
            q = q.filter(Ticket.archived.is_(False))
        return q

    def history(self, ticket_id):
        return list(self.session.execute(
            select(AuditLog).where(AuditLog.ticket_id == int(ticket_id)).order_by(AuditLog.id.asc())
        ).scalars())

    def approval_records(self, ticket_id):
        return self.resolver.records(ticket_id)


__all__ = ['TicketService']
