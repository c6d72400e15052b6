from __future__ import annotations
from flask import Blueprint, current_app, request
from maintflow import get_db
from maintflow.constants.roles import Role
from maintflow.constants.statuses import WorkOrderStatus
from maintflow.decorators.auth import require_roles
from maintflow.models.work_order import WorkOrder
from maintflow.services.policy import current_user
from maintflow.services.work_order_service import WorkOrderService
from maintflow.utils.listing import apply_multi_sort, apply_pagination, make_list_response
from maintflow.utils.validation import json_body, parse_bool, parse_int, validate_choice
from maintflow.workflow.engine import valid_actions
from maintflow.workflow.types import EntityKind

work_orders_bp = Blueprint('work_orders', __name__)


def _service() -> WorkOrderService:
    return WorkOrderService(get_db(), qr_expiration_minutes=current_app.config['QR_EXPIRATION_MINUTES'])


def _iso(dt):
    return dt.isoformat() if dt else None


def work_order_json(wo: WorkOrder, role: str = None, detail: bool = False):
    status = WorkOrderStatus(wo.current_status)
    body = {
        'id': wo.id,
        'ticket_id': wo.ticket_id,
        'vendor_company_id': wo.vendor_company_id,
        'assigned_technician_id': wo.assigned_technician_id,
        'status': wo.current_status,
        'status_label': status.label,
        'owner_type': wo.current_owner_type,
        'owner_id': wo.current_owner_id,
        'declared_technician_count': wo.declared_technician_count,
        'eta': _iso(wo.eta),
        'checkin_ts': _iso(wo.checkin_ts),
        'checkout_ts': _iso(wo.checkout_ts),
        'invoice_batch_id': wo.invoice_batch_id,
        'version': wo.version,
        'updated_at': _iso(wo.updated_at),
    }
    if role is not None:
        body['valid_actions'] = valid_actions(EntityKind.WORK_ORDER, wo.current_status, role)
    if detail:
        body['description'] = wo.description
        body['comment_to_vendor'] = wo.comment_to_vendor
        body['opened_at'] = _iso(wo.opened_at)
        body['invoice_rows'] = [
            {'id': r.id, 'price_list_item_id': r.price_list_item_id, 'description': r.description, 'unit': r.unit,
             'quantity': str(r.quantity), 'unit_price': str(r.unit_price), 'line_total': str(r.line_total),
             'price_warning': r.price_warning}
            for r in wo.invoice_rows
        ]
        body['visits'] = [
            {'id': v.id, 'technician_id': v.technician_id, 'technician_count': v.technician_count,
             'checkin_at': _iso(v.checkin_at), 'checkout_at': _iso(v.checkout_at), 'outcome': v.outcome, 'comment': v.comment}
            for v in wo.visits
        ]
        body['work_report'] = [
            {'id': r.id, 'visit_id': r.visit_id, 'description': r.description, 'hours': str(r.hours) if r.hours is not None else None}
            for r in wo.work_report_rows
        ]
    return body


@work_orders_bp.get('')
@require_roles()
def list_work_orders():
    actor = current_user()
    status = validate_choice(request.args.get('status'), [s.value for s in WorkOrderStatus])
    q = _service().list_work_orders(actor, status=status, ticket_id=parse_int(request.args.get('ticket_id'), 'ticket_id'),
                                    mine=bool(parse_bool(request.args.get('mine'), 'mine')))
    allowed = {
        'status': WorkOrder.current_status,
        'updated_at': WorkOrder.updated_at,
        'id': WorkOrder.id,
    }
    q = apply_multi_sort(q, request.args.get('sort'), allowed, WorkOrder.id)
    paged_q, total, limit, offset = apply_pagination(q)
    rows = [work_order_json(wo, actor.role) for wo in paged_q.all()]
    return make_list_response(rows, total, limit, offset)


@work_orders_bp.get('/price-list')
@require_roles(Role.S1.value, Role.S2.value, Role.S3.value, Role.AMM.value)
def price_list():
    actor = current_user()
    items = _service().price_list(actor, parse_int(request.args.get('vendor_company_id'), 'vendor_company_id'))
    return {'items': [
        {'id': i.id, 'category': i.category, 'description': i.description, 'unit': i.unit,
         'price_per_unit': str(i.price_per_unit), 'selectable': i.selectable}
        for i in items
    ]}


@work_orders_bp.get('/<int:work_order_id>')
@require_roles()
def get_work_order(work_order_id: int):
    actor = current_user()
    return work_order_json(_service().get_work_order(work_order_id, actor), actor.role, detail=True)


@work_orders_bp.post('/<int:work_order_id>/opened')
@require_roles(Role.S1.value)
def record_opened(work_order_id: int):
    actor = current_user()
    return work_order_json(_service().record_opened(work_order_id, actor), actor.role)


@work_orders_bp.post('/<int:work_order_id>/assign-technician')
@require_roles(Role.S1.value)
def assign_technician(work_order_id: int):
    actor = current_user()
    data = json_body()
    wo = _service().assign_technician(work_order_id, actor, parse_int(data.get('technician_id'), 'technician_id', required=True),
                                      eta=data.get('eta'))
    return work_order_json(wo, actor.role)


@work_orders_bp.post('/<int:work_order_id>/check-in')
@require_roles(Role.S2.value)
def check_in(work_order_id: int):
    actor = current_user()
    data = json_body()
    return work_order_json(_service().check_in(work_order_id, actor, data.get('token')), actor.role)


@work_orders_bp.post('/<int:work_order_id>/check-out')
@require_roles(Role.S2.value)
def check_out(work_order_id: int):
    actor = current_user()
    data = json_body()
    wo = _service().check_out(work_order_id, actor, data.get('token'), data.get('outcome'),
                              comment=data.get('comment'), work_report=data.get('work_report'))
    return work_order_json(wo, actor.role)


@work_orders_bp.post('/<int:work_order_id>/cost-proposal')
@require_roles(Role.S2.value, Role.S3.value)
def submit_cost_proposal(work_order_id: int):
    actor = current_user()
    data = json_body()
    wo = _service().submit_cost_proposal(work_order_id, actor, data.get('rows') or [], comment=data.get('comment'))
    return work_order_json(wo, actor.role, detail=True)


@work_orders_bp.post('/<int:work_order_id>/approve-cost')
@require_roles(Role.AMM.value)
def approve_cost(work_order_id: int):
    actor = current_user()
    return work_order_json(_service().approve_cost_proposal(work_order_id, actor, json_body().get('comment')), actor.role)


@work_orders_bp.post('/<int:work_order_id>/request-revision')
@require_roles(Role.AMM.value)
def request_revision(work_order_id: int):
    actor = current_user()
    return work_order_json(_service().request_cost_revision(work_order_id, actor, json_body().get('comment')), actor.role)


@work_orders_bp.post('/<int:work_order_id>/close-without-cost')
@require_roles(Role.AMM.value, Role.S2.value)
def close_without_cost(work_order_id: int):
    actor = current_user()
    return work_order_json(_service().close_without_cost(work_order_id, actor, json_body().get('comment')), actor.role)


@work_orders_bp.post('/<int:work_order_id>/return-for-clarification')
@require_roles(Role.S1.value)
def return_for_clarification(work_order_id: int):
    actor = current_user()
    return work_order_json(_service().return_for_clarification(work_order_id, actor, json_body().get('comment')), actor.role)


@work_orders_bp.post('/<int:work_order_id>/resend-to-vendor')
@require_roles(Role.AMM.value)
def resend_to_vendor(work_order_id: int):
    actor = current_user()
    return work_order_json(_service().resend_to_vendor(work_order_id, actor, json_body().get('comment_to_vendor')), actor.role)


@work_orders_bp.post('/<int:work_order_id>/return-for-tech-count')
@require_roles(Role.S2.value)
def return_for_tech_count(work_order_id: int):
    actor = current_user()
    return work_order_json(_service().return_for_tech_count(work_order_id, actor, json_body().get('comment')), actor.role)


@work_orders_bp.post('/<int:work_order_id>/reject')
@require_roles(Role.AMM.value, Role.S1.value)
def reject(work_order_id: int):
    actor = current_user()
    return work_order_json(_service().reject(work_order_id, actor, json_body().get('reason')), actor.role)


@work_orders_bp.post('/<int:work_order_id>/schedule-follow-up')
@require_roles(Role.S1.value)
def schedule_follow_up(work_order_id: int):
    actor = current_user()
    return work_order_json(_service().schedule_follow_up(work_order_id, actor, eta=json_body().get('eta')), actor.role)
