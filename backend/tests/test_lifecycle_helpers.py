"""Reusable test helpers for the ticket and work order lifecycles.

Patterns unified:
 - Auth header creation using direct JWT claims (when bypassing /login) or login based.
 - Driving a ticket / work order to a given status through the services.
 - Transition assertion against the HTTP API, including the workflow error code.
"""
from __future__ import annotations
from typing import Dict, Optional
from flask_jwt_extended import create_access_token
from maintflow import get_db
from maintflow.constants.roles import Role
from maintflow.models.org import User
from maintflow.models.ticket import Ticket
from maintflow.services.policy import build_claims
from maintflow.services.ticket_service import TicketService
from maintflow.services.work_order_service import WorkOrderService
from maintflow.utils.clock import FixedClock
from tests.test_utils_seed import Org, PASSWORD

# ---------- Generic Auth Helpers ---------- #

def jwt_headers(user: User):
    token = create_access_token(identity=str(user.id), additional_claims=build_claims(user))
    return {'Authorization': f'Bearer {token}'}


def login_headers(client, user: User, password: str = PASSWORD):
    resp = client.post('/iam/auth/login', json={'email': user.email, 'password': password})
    assert resp.status_code == 200, resp.get_json()
    return {'Authorization': f"Bearer {resp.get_json()['access_token']}"}

# ---------- Assertion Helpers ---------- #

def assert_transition(client, url: str, headers: Dict[str, str], expected_status: int, expected_body_value: str = None,
                      payload: Optional[dict] = None, expected_code: str = None, expected_body_key: str = 'status'):
    resp = client.post(url, json=payload or {}, headers=headers)
    assert resp.status_code == expected_status, resp.get_json()
    body = resp.get_json()
    if expected_status < 400 and expected_body_value is not None:
        assert body[expected_body_key] == expected_body_value
    if expected_code is not None:
        assert body['error']['code'] == expected_code
    return resp


def create_resource_and_assert(client, url: str, payload: dict, headers: Dict[str, str], expected_status_field: str = 'status',
                               expected_initial_status: str = None):
    resp = client.post(url, json=payload, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    body = resp.get_json()
    if expected_initial_status:
        assert body[expected_status_field] == expected_initial_status
    return body

# ---------- Service level drivers ---------- #

def services(clock: Optional[FixedClock] = None):
    clock = clock or FixedClock()
    session = get_db()
    return TicketService(session, clock=clock), WorkOrderService(session, clock=clock)


def submitted_ticket(org: Org, urgent: bool = False, tickets: TicketService = None):
    tickets = tickets or TicketService(get_db())
    sm = org.user(Role.SM)
    ticket = tickets.create_ticket(sm, org.store.id, 'Refrigeration', 'Freezer not cooling', urgent=urgent)
    return tickets.submit(ticket.id, sm)


def approved_ticket(org: Org, amount='500', tickets: TicketService = None):
    """Non-urgent ticket walked through estimation and the full approval chain."""
    tickets = tickets or TicketService(get_db())
    ticket = submitted_ticket(org, tickets=tickets)
    tickets.approve_for_estimation(ticket.id, org.user(Role.AM))
    tickets.submit_cost_estimation(ticket.id, org.user(Role.AMM), amount)
    for role in (Role.AM, Role.D, Role.C2, Role.BOD):
        ticket = get_db().get(Ticket, ticket.id)
        if ticket.current_status != 'COST_ESTIMATION_APPROVAL_NEEDED':
            break
        tickets.approve_cost_estimation(ticket.id, org.user(role))
    return ticket


def work_order_for(org: Org, urgent: bool = True, tickets: TicketService = None):
    tickets = tickets or TicketService(get_db())
    ticket = submitted_ticket(org, urgent=True, tickets=tickets) if urgent else approved_ticket(org, tickets=tickets)
    return tickets.create_work_order(ticket.id, org.user(Role.AMM), org.vendor.id, 'Fix the freezer')


def assigned_work_order(org: Org, work_orders: WorkOrderService, urgent: bool = True):
    wo = work_order_for(org, urgent=urgent, tickets=work_orders.tickets)
    return work_orders.assign_technician(wo.id, org.user(Role.S1), org.user(Role.S2).id, eta='2024-01-02T09:00:00')


def checked_in_work_order(org: Org, work_orders: WorkOrderService, technician_count: int = 2):
    wo = assigned_work_order(org, work_orders)
    record = work_orders.generate_qr(wo.id, org.user(Role.SM), technician_count=technician_count)
    return work_orders.check_in(wo.id, org.user(Role.S2), record.token)


def checked_out_work_order(org: Org, work_orders: WorkOrderService, outcome: str = 'FIXED', comment: str = None):
    wo = checked_in_work_order(org, work_orders)
    record = work_orders.generate_qr(wo.id, org.user(Role.SM))
    return work_orders.check_out(wo.id, org.user(Role.S2), record.token, outcome, comment=comment)


def approved_work_order(org: Org, work_orders: WorkOrderService):
    wo = checked_out_work_order(org, work_orders)
    work_orders.submit_cost_proposal(wo.id, org.user(Role.S3), [
        {'description': 'Compressor relay', 'quantity': '1', 'unit_price': '120.50'},
        {'description': 'Labour', 'unit': 'h', 'quantity': '2', 'unit_price': '45'},
    ])
    return work_orders.approve_cost_proposal(wo.id, org.user(Role.AMM))


__all__ = [
    'jwt_headers', 'login_headers', 'assert_transition', 'create_resource_and_assert', 'services',
    'submitted_ticket', 'approved_ticket', 'work_order_for', 'assigned_work_order', 'checked_in_work_order',
    'checked_out_work_order', 'approved_work_order',
]
