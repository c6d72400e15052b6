from __future__ import annotations
from flask import Blueprint, request
from maintflow import get_db
from maintflow.constants.roles import Role
from maintflow.constants.statuses import TicketStatus
from maintflow.decorators.auth import require_roles
from maintflow.models.ticket import Ticket, TicketComment
from maintflow.routes.work_orders import work_order_json
from maintflow.services.policy import current_user
from maintflow.services.ticket_service import TicketService
from maintflow.utils.listing import apply_multi_sort, apply_pagination, make_list_response
from maintflow.utils.validation import json_body, parse_bool, parse_int, validate_choice
from maintflow.workflow.engine import valid_actions
from maintflow.workflow.types import EntityKind

tickets_bp = Blueprint('tickets', __name__)


def _iso(dt):
    return dt.isoformat() if dt else None


def comment_json(c: TicketComment):
    return {'id': c.id, 'user_id': c.user_id, 'text': c.text, 'is_internal': c.is_internal, 'created_at': _iso(c.created_at)}


def ticket_json(t: Ticket, role: str = None):
    status = TicketStatus(t.current_status)
    body = {
        'id': t.id,
        'store_id': t.store_id,
        'company_id': t.company_id,
        'created_by_user_id': t.created_by_user_id,
        'category': t.category,
        'description': t.description,
        'original_description': t.original_description,
        'urgent': t.urgent,
        'status': t.current_status,
        'status_label': status.label,
        'owner_id': t.current_owner_user_id,
        'asset_id': t.asset_id,
        'archived': t.archived,
        'cost_estimation': str(t.cost_estimation.amount) if t.cost_estimation else None,
        'version': t.version,
        'created_at': _iso(t.created_at),
        'updated_at': _iso(t.updated_at),
    }
    if role is not None:
        body['valid_actions'] = valid_actions(EntityKind.TICKET, t.current_status, role)
    return body


def _detail_json(svc: TicketService, t: Ticket, actor):
    body = ticket_json(t, actor.role)
    comments = svc.session.query(TicketComment).filter(TicketComment.ticket_id == t.id).order_by(TicketComment.id.asc())
    if actor.is_vendor:
        comments = comments.filter(TicketComment.is_internal.is_(False))
    body['comments'] = [comment_json(c) for c in comments]
    body['approvals'] = [
        {'id': r.id, 'approver_user_id': r.approver_user_id, 'role': r.role, 'decision': r.decision,
         'comment': r.comment, 'created_at': _iso(r.created_at)}
        for r in svc.approval_records(t.id)
    ]
    body['work_orders'] = [work_order_json(wo) for wo in t.work_orders]
    body['history'] = [
        {'action': a.action, 'prev_status': a.prev_status, 'new_status': a.new_status, 'actor_id': a.actor_id,
         'actor_type': a.actor_type, 'comment': a.comment, 'created_at': _iso(a.created_at)}
        for a in svc.history(t.id)
    ]
    return body


@tickets_bp.get('')
@require_roles()
def list_tickets():
    actor = current_user()
    args = request.args
    status = validate_choice(args.get('status'), [s.value for s in TicketStatus])
    q = TicketService(get_db()).list_tickets(
        actor, status=status, urgent=parse_bool(args.get('urgent'), 'urgent'),
        mine=bool(parse_bool(args.get('mine'), 'mine')),
        include_archived=bool(parse_bool(args.get('include_archived'), 'include_archived')),
    )
    allowed = {
        'status': Ticket.current_status,
        'urgent': Ticket.urgent,
        'created_at': Ticket.created_at,
        'updated_at': Ticket.updated_at,
        'id': Ticket.id,
    }
    q = apply_multi_sort(q, args.get('sort'), allowed, Ticket.id)
    paged_q, total, limit, offset = apply_pagination(q)
    rows = [ticket_json(t, actor.role) for t in paged_q.all()]
    return make_list_response(rows, total, limit, offset)


@tickets_bp.post('')
@require_roles(Role.SM.value, Role.AMM.value)
def create_ticket():
    actor = current_user()
    data = json_body()
    store_id = parse_int(data.get('store_id'), 'store_id') or actor.store_id
    ticket = TicketService(get_db()).create_ticket(
        actor, store_id, data.get('category'), data.get('description'),
        urgent=bool(parse_bool(data.get('urgent'), 'urgent')), asset_id=parse_int(data.get('asset_id'), 'asset_id'),
    )
    return ticket_json(ticket, actor.role), 201


@tickets_bp.get('/<int:ticket_id>')
@require_roles()
def get_ticket(ticket_id: int):
    actor = current_user()
    svc = TicketService(get_db())
    return _detail_json(svc, svc.get_ticket(ticket_id, actor), actor)


@tickets_bp.post('/<int:ticket_id>/submit')
@require_roles()
def submit(ticket_id: int):
    actor = current_user()
    return ticket_json(TicketService(get_db()).submit(ticket_id, actor), actor.role)


@tickets_bp.post('/<int:ticket_id>/request-clarification')
@require_roles()
def request_clarification(ticket_id: int):
    actor = current_user()
    data = json_body()
    ticket = TicketService(get_db()).request_clarification(ticket_id, actor, data.get('comment'),
                                                           assign_to_role=data.get('assign_to_role'))
    return ticket_json(ticket, actor.role)


@tickets_bp.post('/<int:ticket_id>/submit-updated')
@require_roles()
def submit_updated(ticket_id: int):
    actor = current_user()
    data = json_body()
    ticket = TicketService(get_db()).submit_updated(ticket_id, actor, comment=data.get('comment'),
                                                    description=data.get('description'),
                                                    asset_id=parse_int(data.get('asset_id'), 'asset_id'))
    return ticket_json(ticket, actor.role)


@tickets_bp.post('/<int:ticket_id>/approve-for-estimation')
@require_roles()
def approve_for_estimation(ticket_id: int):
    actor = current_user()
    return ticket_json(TicketService(get_db()).approve_for_estimation(ticket_id, actor), actor.role)


@tickets_bp.post('/<int:ticket_id>/reject')
@require_roles()
def reject(ticket_id: int):
    actor = current_user()
    return ticket_json(TicketService(get_db()).reject(ticket_id, actor, json_body().get('reason')), actor.role)


@tickets_bp.post('/<int:ticket_id>/withdraw')
@require_roles()
def withdraw(ticket_id: int):
    actor = current_user()
    return ticket_json(TicketService(get_db()).withdraw(ticket_id, actor, json_body().get('comment')), actor.role)


@tickets_bp.post('/<int:ticket_id>/comments')
@require_roles()
def add_comment(ticket_id: int):
    actor = current_user()
    data = json_body()
    comment = TicketService(get_db()).add_comment(ticket_id, actor, data.get('text'),
                                                  internal=bool(parse_bool(data.get('internal'), 'internal')))
    return comment_json(comment), 201


@tickets_bp.post('/<int:ticket_id>/cost-estimation')
@require_roles()
def submit_cost_estimation(ticket_id: int):
    actor = current_user()
    data = json_body()
    ticket = TicketService(get_db()).submit_cost_estimation(ticket_id, actor, data.get('amount'), comment=data.get('comment'))
    return ticket_json(ticket, actor.role)


@tickets_bp.post('/<int:ticket_id>/approve-cost')
@require_roles()
def approve_cost(ticket_id: int):
    actor = current_user()
    ticket = TicketService(get_db()).approve_cost_estimation(ticket_id, actor, comment=json_body().get('comment'))
    return ticket_json(ticket, actor.role)


@tickets_bp.post('/<int:ticket_id>/return-cost')
@require_roles()
def return_cost(ticket_id: int):
    actor = current_user()
    ticket = TicketService(get_db()).return_cost_estimation(ticket_id, actor, json_body().get('comment'))
    return ticket_json(ticket, actor.role)


@tickets_bp.post('/<int:ticket_id>/work-orders')
@require_roles(Role.AMM.value)
def create_work_order(ticket_id: int):
    actor = current_user()
    data = json_body()
    wo = TicketService(get_db()).create_work_order(
        ticket_id, actor, parse_int(data.get('vendor_company_id'), 'vendor_company_id', required=True),
        description=data.get('description'),
    )
    return work_order_json(wo, actor.role), 201


@tickets_bp.post('/<int:ticket_id>/archive')
@require_roles(Role.AMM.value)
def archive(ticket_id: int):
    actor = current_user()
    return ticket_json(TicketService(get_db()).archive(ticket_id, actor), actor.role)
