"""Vendor side of the workflow over HTTP: assignment, QR check-in/out, cost proposal, batching."""
import pytest
from maintflow.constants.roles import Role
from tests.test_lifecycle_helpers import assert_transition, login_headers
from tests.test_utils_seed import add_price_item, seed_org


@pytest.fixture()
def org():
    return seed_org()


@pytest.fixture()
def headers(client, org):
    return {role: login_headers(client, org.user(role)) for role in Role}


def _urgent_work_order(client, org, headers):
    tid = client.post('/tickets', json={'category': 'Doors', 'description': 'Entrance door stuck', 'urgent': True},
                      headers=headers[Role.SM]).get_json()['id']
    client.post(f'/tickets/{tid}/submit', headers=headers[Role.SM])
    resp = client.post(f'/tickets/{tid}/work-orders', json={'vendor_company_id': org.vendor.id}, headers=headers[Role.AMM])
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


def _qr(client, headers, wo_id, **payload):
    resp = client.post('/qr/generate', json={'work_order_id': wo_id, **payload}, headers=headers[Role.SM])
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


def test_vendor_flow_to_invoice_batch(client, org, headers):
    wo = _urgent_work_order(client, org, headers)
    base = f"/work-orders/{wo['id']}"
    opened = client.post(f'{base}/opened', headers=headers[Role.S1]).get_json()
    assert opened['status'] == 'CREATED'
    assert_transition(client, f'{base}/assign-technician', headers[Role.S1], 200, 'ACCEPTED_TECHNICIAN_ASSIGNED',
                      payload={'technician_id': org.user(Role.S2).id, 'eta': '2024-05-01T08:00:00'})

    checkin = _qr(client, headers, wo['id'], technician_count=2, scan_type='CHECKIN')
    assert checkin['scan_type'] == 'CHECKIN' and checkin['token']
    active = client.get(f"/qr/work-orders/{wo['id']}/active", headers=headers[Role.SM]).get_json()['data']
    assert len(active) == 1 and 'token' not in active[0]
    resp = assert_transition(client, f'{base}/check-in', headers[Role.S2], 200, 'SERVICE_IN_PROGRESS',
                             payload={'token': checkin['token']})
    assert resp.get_json()['declared_technician_count'] == 2
    assert_transition(client, f'{base}/check-in', headers[Role.S2], 400, payload={'token': checkin['token']},
                      expected_code='QR_ALREADY_USED')

    checkout = _qr(client, headers, wo['id'])
    assert checkout['scan_type'] == 'CHECKOUT'
    assert_transition(client, f'{base}/check-out', headers[Role.S2], 200, 'SERVICE_COMPLETED',
                      payload={'token': checkout['token'], 'outcome': 'FIXED',
                               'work_report': [{'description': 'Adjusted hinge', 'hours': 1}]})

    resp = assert_transition(client, f'{base}/cost-proposal', headers[Role.S3], 200, 'COST_PROPOSAL_PREPARED',
                             payload={'rows': [{'description': 'Hinge', 'quantity': 1, 'unit_price': '80'}]})
    assert resp.get_json()['invoice_rows'][0]['line_total'] == '80.00'
    assert_transition(client, f'{base}/request-revision', headers[Role.AMM], 200, 'COST_REVISION_REQUESTED',
                      payload={'comment': 'quote the labour too'})
    assert_transition(client, f'{base}/cost-proposal', headers[Role.S3], 200, 'COST_PROPOSAL_PREPARED',
                      payload={'rows': [{'description': 'Hinge', 'quantity': 1, 'unit_price': '80'},
                                        {'description': 'Labour', 'unit': 'h', 'quantity': 1, 'unit_price': '40'}]})
    assert_transition(client, f'{base}/approve-cost', headers[Role.AMM], 200, 'COST_PROPOSAL_APPROVED')

    ticket = client.get(f"/tickets/{wo['ticket_id']}?include_archived=true", headers=headers[Role.AMM]).get_json()
    assert ticket['status'] == 'ARCHIVED'

    detail = client.get(base, headers=headers[Role.S3]).get_json()
    assert [v['outcome'] for v in detail['visits']] == ['FIXED']
    assert detail['work_report'][0]['description'] == 'Adjusted hinge'
    assert detail['opened_at'] is not None

    resp = client.post('/invoice-batches', json={'work_order_ids': [wo['id']]}, headers=headers[Role.S3])
    assert resp.status_code == 201, resp.get_json()
    batch = resp.get_json()
    assert batch['total_amount'] == '120.00'
    assert batch['work_order_ids'] == [wo['id']]
    listed = client.get('/invoice-batches', headers=headers[Role.C2]).get_json()
    assert listed['pagination']['total'] == 1
    dup = client.post('/invoice-batches', json={'work_order_ids': [wo['id']]}, headers=headers[Role.S3])
    assert dup.status_code == 409
    assert dup.get_json()['error']['code'] == 'ALREADY_BATCHED'


def test_batch_payload_must_be_list(client, headers):
    resp = client.post('/invoice-batches', json={'work_order_ids': 5}, headers=headers[Role.S3])
    assert resp.status_code == 400


def test_vendor_roles_gate_endpoints(client, org, headers):
    wo = _urgent_work_order(client, org, headers)
    base = f"/work-orders/{wo['id']}"
    assert client.post(f'{base}/assign-technician', json={'technician_id': 1}, headers=headers[Role.AMM]).status_code == 403
    assert client.post(f'{base}/approve-cost', headers=headers[Role.S1]).status_code == 403
    assert client.post('/invoice-batches', json={'work_order_ids': []}, headers=headers[Role.S1]).status_code == 403


def test_price_list_endpoint(client, org, headers):
    hinge = add_price_item(org.vendor, 'Hinge', '75.00', category='Doors')
    resp = client.get('/work-orders/price-list', headers=headers[Role.S3])
    assert resp.status_code == 200
    assert resp.get_json()['items'] == [
        {'id': hinge.id, 'category': 'Doors', 'description': 'Hinge', 'unit': 'pcs', 'price_per_unit': '75.00', 'selectable': True},
    ]
    assert client.get('/work-orders/price-list', headers=headers[Role.AMM]).get_json()['error']['code'] == 'VALIDATION_ERROR'
    resp = client.get(f'/work-orders/price-list?vendor_company_id={org.vendor.id}', headers=headers[Role.AMM])
    assert [i['description'] for i in resp.get_json()['items']] == ['Hinge']
    assert client.get('/work-orders/price-list', headers=headers[Role.SM]).status_code == 403


def test_clarification_and_resend(client, org, headers):
    wo = _urgent_work_order(client, org, headers)
    base = f"/work-orders/{wo['id']}"
    resp = assert_transition(client, f'{base}/return-for-clarification', headers[Role.S1], 200, 'CREATED',
                             payload={'comment': 'Which door?'})
    assert resp.get_json()['owner_type'] == 'INTERNAL'
    assert_transition(client, f'{base}/assign-technician', headers[Role.S1], 403,
                      payload={'technician_id': org.user(Role.S2).id}, expected_code='NOT_OWNER')
    resp = assert_transition(client, f'{base}/resend-to-vendor', headers[Role.AMM], 200, 'CREATED',
                             payload={'comment_to_vendor': 'Main entrance'})
    assert resp.get_json()['owner_type'] == 'VENDOR'


def test_technician_count_correction(client, org, headers):
    wo = _urgent_work_order(client, org, headers)
    base = f"/work-orders/{wo['id']}"
    client.post(f'{base}/assign-technician', json={'technician_id': org.user(Role.S2).id}, headers=headers[Role.S1])
    resp = assert_transition(client, f'{base}/return-for-tech-count', headers[Role.S2], 200, 'ACCEPTED_TECHNICIAN_ASSIGNED',
                             payload={'comment': 'we are three'})
    assert resp.get_json()['owner_id'] == org.user(Role.SM).id
    code = _qr(client, headers, wo['id'], technician_count=3)
    resp = assert_transition(client, f'{base}/check-in', headers[Role.S2], 200, 'SERVICE_IN_PROGRESS',
                             payload={'token': code['token']})
    assert resp.get_json()['declared_technician_count'] == 3


def test_follow_up_then_close(client, org, headers):
    wo = _urgent_work_order(client, org, headers)
    base = f"/work-orders/{wo['id']}"
    client.post(f'{base}/assign-technician', json={'technician_id': org.user(Role.S2).id}, headers=headers[Role.S1])
    code = _qr(client, headers, wo['id'], technician_count=1)
    client.post(f'{base}/check-in', json={'token': code['token']}, headers=headers[Role.S2])
    code = _qr(client, headers, wo['id'])
    assert_transition(client, f'{base}/check-out', headers[Role.S2], 400,
                      payload={'token': code['token'], 'outcome': 'FOLLOW_UP'}, expected_code='VALIDATION_ERROR')
    assert_transition(client, f'{base}/check-out', headers[Role.S2], 200, 'FOLLOW_UP_REQUESTED',
                      payload={'token': code['token'], 'outcome': 'FOLLOW_UP', 'comment': 'part ordered'})
    assert_transition(client, f'{base}/schedule-follow-up', headers[Role.S1], 200, 'ACCEPTED_TECHNICIAN_ASSIGNED',
                      payload={'eta': '2024-05-03T08:00:00'})
    code = _qr(client, headers, wo['id'], technician_count=1)
    client.post(f'{base}/check-in', json={'token': code['token']}, headers=headers[Role.S2])
    assert_transition(client, f'{base}/close-without-cost', headers[Role.S2], 200, 'CLOSED_WITHOUT_COST',
                      payload={'comment': 'covered by warranty'})


def test_list_work_orders_by_role(client, org, headers):
    wo = _urgent_work_order(client, org, headers)
    body = client.get('/work-orders', headers=headers[Role.S1]).get_json()
    assert [r['id'] for r in body['data']] == [wo['id']]
    assert 'ASSIGN_TECHNICIAN' in body['data'][0]['valid_actions']
    assert client.get('/work-orders', headers=headers[Role.S2]).get_json()['pagination']['total'] == 0
    assert client.get(f"/work-orders?ticket_id={wo['ticket_id']}", headers=headers[Role.SM]).get_json()['pagination']['total'] == 1
    assert client.get(f"/work-orders/{wo['id']}", headers=headers[Role.S2]).status_code == 404
