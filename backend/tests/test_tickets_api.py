"""End-to-end ticket lifecycle over HTTP, including the workflow error codes."""
import pytest
from maintflow.constants.roles import Role
from maintflow.errors import INVALID_TRANSITION, NOT_OWNER, ROLE_NOT_ALLOWED, VALIDATION_ERROR
from tests.test_lifecycle_helpers import assert_transition, create_resource_and_assert, login_headers
from tests.test_utils_seed import seed_org


@pytest.fixture()
def org():
    return seed_org()


@pytest.fixture()
def headers(client, org):
    return {role: login_headers(client, org.user(role)) for role in Role}


def _create(client, headers, **extra):
    payload = {'category': 'Refrigeration', 'description': 'Freezer not cooling'}
    payload.update(extra)
    return create_resource_and_assert(client, '/tickets', payload, headers[Role.SM], expected_initial_status='DRAFT')


def test_create_and_submit(client, org, headers):
    body = _create(client, headers)
    assert body['store_id'] == org.store.id
    assert body['valid_actions'] == ['SUBMIT']
    assert body['status_label'] == 'Draft'
    resp = assert_transition(client, f"/tickets/{body['id']}/submit", headers[Role.SM], 200, 'SUBMITTED')
    assert resp.get_json()['owner_id'] == org.user(Role.AM).id


def test_create_validation(client, headers):
    resp = client.post('/tickets', json={'category': 'Doors'}, headers=headers[Role.SM])
    assert resp.status_code == 400
    assert resp.get_json()['error']['code'] == VALIDATION_ERROR
    resp = client.post('/tickets', json={'category': 'Doors', 'description': 'x'}, headers=headers[Role.S1])
    assert resp.status_code == 403


def test_full_estimation_flow(client, org, headers):
    tid = _create(client, headers)['id']
    base = f'/tickets/{tid}'
    assert_transition(client, f'{base}/submit', headers[Role.SM], 200, 'SUBMITTED')
    assert_transition(client, f'{base}/request-clarification', headers[Role.AM], 200, 'AWAITING_CREATOR_RESPONSE',
                      payload={'comment': 'Which freezer?'})
    assert_transition(client, f'{base}/submit-updated', headers[Role.SM], 200, 'UPDATED_SUBMITTED',
                      payload={'comment': 'The one by the door', 'description': 'Freezer 2 not cooling'})
    assert_transition(client, f'{base}/approve-for-estimation', headers[Role.AM], 200, 'COST_ESTIMATION_NEEDED')
    assert_transition(client, f'{base}/cost-estimation', headers[Role.AMM], 200, 'COST_ESTIMATION_APPROVAL_NEEDED',
                      payload={'amount': '1500.00', 'comment': 'two quotes attached'})
    for role in (Role.AM, Role.D):
        assert_transition(client, f'{base}/approve-cost', headers[role], 200, 'COST_ESTIMATION_APPROVAL_NEEDED')
    resp = assert_transition(client, f'{base}/approve-cost', headers[Role.C2], 200, 'COST_ESTIMATION_APPROVED')
    assert resp.get_json()['cost_estimation'] == '1500.00'

    resp = client.post(f'{base}/work-orders', json={'vendor_company_id': org.vendor.id}, headers=headers[Role.AMM])
    assert resp.status_code == 201, resp.get_json()
    assert resp.get_json()['status'] == 'CREATED'

    detail = client.get(base, headers=headers[Role.AMM]).get_json()
    assert detail['status'] == 'WORK_ORDER_IN_PROGRESS'
    assert detail['description'] == 'Freezer 2 not cooling'
    assert detail['original_description'] == 'Freezer not cooling'
    assert [a['role'] for a in detail['approvals']] == ['AM', 'D', 'C2']
    assert len(detail['work_orders']) == 1
    assert [h['action'] for h in detail['history']][:3] == ['CREATE', 'SUBMIT', 'REQUEST_CLARIFICATION']
    assert [c['text'] for c in detail['comments']][:2] == ['Which freezer?', 'The one by the door']


def test_wrong_owner_gets_not_owner_code(client, org, headers):
    tid = _create(client, headers)['id']
    assert_transition(client, f'/tickets/{tid}/submit', headers[Role.SM], 200, 'SUBMITTED')
    assert_transition(client, f'/tickets/{tid}/request-clarification', headers[Role.AMM], 403,
                      payload={'comment': 'x'}, expected_code=NOT_OWNER)
    assert_transition(client, f'/tickets/{tid}/approve-for-estimation', headers[Role.SM], 403,
                      expected_code=ROLE_NOT_ALLOWED)
    assert_transition(client, f'/tickets/{tid}/submit', headers[Role.SM], 400, expected_code=INVALID_TRANSITION)


def test_vendor_sees_only_public_comments(client, org, headers):
    tid = _create(client, headers, urgent=True)['id']
    client.post(f'/tickets/{tid}/submit', headers=headers[Role.SM])
    resp = client.post(f'/tickets/{tid}/comments', json={'text': 'budget is tight', 'internal': True}, headers=headers[Role.AMM])
    assert resp.status_code == 201
    client.post(f'/tickets/{tid}/comments', json={'text': 'door code 1234'}, headers=headers[Role.AMM])
    client.post(f'/tickets/{tid}/work-orders', json={'vendor_company_id': org.vendor.id}, headers=headers[Role.AMM])
    vendor_view = client.get(f'/tickets/{tid}', headers=headers[Role.S1]).get_json()
    assert [c['text'] for c in vendor_view['comments']] == ['door code 1234']
    internal_view = client.get(f'/tickets/{tid}', headers=headers[Role.AMM]).get_json()
    assert len(internal_view['comments']) == 2


def test_work_order_needs_vendor(client, headers):
    tid = _create(client, headers, urgent=True)['id']
    client.post(f'/tickets/{tid}/submit', headers=headers[Role.SM])
    resp = client.post(f'/tickets/{tid}/work-orders', json={}, headers=headers[Role.AMM])
    assert resp.status_code == 400


def test_list_filters_pagination_and_etag(client, org, headers):
    ids = [_create(client, headers, urgent=(i % 2 == 0))['id'] for i in range(5)]
    resp = client.get('/tickets?limit=2&offset=1&sort=-id', headers=headers[Role.SM])
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['pagination'] == {'total': 5, 'limit': 2, 'offset': 1, 'returned': 2}
    assert [r['id'] for r in body['data']] == sorted(ids, reverse=True)[1:3]
    etag = resp.headers['ETag']
    again = client.get('/tickets?limit=2&offset=1&sort=-id', headers={**headers[Role.SM], 'If-None-Match': etag})
    assert again.status_code == 304

    urgent = client.get('/tickets?urgent=true', headers=headers[Role.SM]).get_json()
    assert urgent['pagination']['total'] == 3
    mine = client.get('/tickets?mine=true', headers=headers[Role.AM]).get_json()
    assert mine['pagination']['total'] == 0
    assert client.get('/tickets?sort=nope', headers=headers[Role.SM]).status_code == 400
    assert client.get('/tickets?status=BOGUS', headers=headers[Role.SM]).status_code == 400


def test_etag_changes_after_transition(client, headers):
    tid = _create(client, headers)['id']
    first = client.get('/tickets', headers=headers[Role.SM]).headers['ETag']
    client.post(f'/tickets/{tid}/submit', headers=headers[Role.SM])
    assert client.get('/tickets', headers=headers[Role.SM]).headers['ETag'] != first


def test_archive_after_rejected_work_order(client, org, headers):
    tid = _create(client, headers, urgent=True)['id']
    client.post(f'/tickets/{tid}/submit', headers=headers[Role.SM])
    wo = client.post(f'/tickets/{tid}/work-orders', json={'vendor_company_id': org.vendor.id}, headers=headers[Role.AMM]).get_json()
    assert_transition(client, f'/tickets/{tid}/archive', headers[Role.AMM], 400, expected_code='WORK_ORDERS_ACTIVE')
    assert_transition(client, f"/work-orders/{wo['id']}/reject", headers[Role.S1], 200, 'REJECTED',
                      payload={'reason': 'out of area'})
    resp = assert_transition(client, f'/tickets/{tid}/archive', headers[Role.AMM], 200, 'ARCHIVED')
    assert resp.get_json()['archived'] is True
    listed = client.get('/tickets', headers=headers[Role.AMM]).get_json()
    assert listed['pagination']['total'] == 0
    listed = client.get('/tickets?include_archived=true', headers=headers[Role.AMM]).get_json()
    assert listed['pagination']['total'] == 1
