from datetime import timedelta
import pytest
from maintflow import get_db
from maintflow.constants.roles import Role
from maintflow.errors import (
    NOT_OWNER, QR_ALREADY_USED, QR_EXPIRED, QR_NOT_ALLOWED, QR_SCAN_TYPE_MISMATCH, ROLE_NOT_ALLOWED,
    VALIDATION_ERROR, WorkflowError,
)
from maintflow.models.audit import AuditLog
from maintflow.models.qr import QRRecord
from maintflow.models.work_order import WorkOrder
from maintflow.utils.clock import FixedClock
from maintflow.workflow.qr import QRFailure, QRLifecycleManager
from tests.test_lifecycle_helpers import (
    assigned_work_order, checked_in_work_order, checked_out_work_order, services, work_order_for,
)
from tests.test_utils_seed import add_user, seed_org


@pytest.fixture()
def org():
    return seed_org()


@pytest.fixture()
def clock():
    return FixedClock()


@pytest.fixture()
def work_orders(clock):
    _, wos = services(clock)
    return wos


def test_expiration_must_be_positive():
    with pytest.raises(ValueError):
        QRLifecycleManager(get_db(), expiration_minutes=0)


def test_generate_checkin_code(org, work_orders, clock):
    wo = assigned_work_order(org, work_orders)
    record = work_orders.generate_qr(wo.id, org.user(Role.SM), technician_count=2)
    assert record.scan_type == QRRecord.SCAN_CHECKIN
    assert record.technician_count == 2
    assert record.expires_at == clock.now() + timedelta(minutes=5)
    assert not record.used
    assert len(record.token) >= 32
    assert get_db().get(WorkOrder, wo.id).declared_technician_count == 2


def test_tokens_are_unique(org, work_orders):
    wo = assigned_work_order(org, work_orders)
    tokens = {work_orders.generate_qr(wo.id, org.user(Role.SM), technician_count=1).token for _ in range(5)}
    assert len(tokens) == 5
    assert len(work_orders.qr.active_tokens(wo.id)) == 5


@pytest.mark.parametrize('count', [None, 0, -1, 'two'])
def test_checkin_code_needs_technician_count(org, work_orders, count):
    wo = assigned_work_order(org, work_orders)
    with pytest.raises(WorkflowError) as exc:
        work_orders.generate_qr(wo.id, org.user(Role.SM), technician_count=count)
    assert exc.value.error_code == VALIDATION_ERROR


def test_only_store_manager_generates(org, work_orders):
    wo = assigned_work_order(org, work_orders)
    for role in (Role.AMM, Role.S1, Role.S2):
        with pytest.raises(WorkflowError) as exc:
            work_orders.generate_qr(wo.id, org.user(role), technician_count=1)
        assert exc.value.error_code == ROLE_NOT_ALLOWED


def test_other_store_manager_cannot_generate(org, work_orders):
    wo = assigned_work_order(org, work_orders)
    other = seed_org('other')
    with pytest.raises(WorkflowError) as exc:
        work_orders.generate_qr(wo.id, other.user(Role.SM), technician_count=1)
    assert exc.value.error_code == QR_NOT_ALLOWED


def test_no_code_before_technician_assigned(org, work_orders):
    wo = work_order_for(org, tickets=work_orders.tickets)
    with pytest.raises(WorkflowError) as exc:
        work_orders.generate_qr(wo.id, org.user(Role.SM), technician_count=1)
    assert exc.value.error_code == QR_NOT_ALLOWED


def test_scan_type_must_match_status(org, work_orders):
    wo = assigned_work_order(org, work_orders)
    with pytest.raises(WorkflowError) as exc:
        work_orders.generate_qr(wo.id, org.user(Role.SM), technician_count=1, scan_type='CHECKOUT')
    assert exc.value.error_code == QR_SCAN_TYPE_MISMATCH
    record = work_orders.generate_qr(wo.id, org.user(Role.SM), technician_count=1, scan_type='checkin')
    assert record.scan_type == QRRecord.SCAN_CHECKIN


def test_validate_reasons(org, work_orders):
    wo = assigned_work_order(org, work_orders)
    other = work_order_for(org, tickets=work_orders.tickets)
    record = work_orders.generate_qr(wo.id, org.user(Role.SM), technician_count=1)
    qr = work_orders.qr
    assert qr.validate('nope', wo.id).reason is QRFailure.NOT_FOUND
    assert qr.validate(None, wo.id).reason is QRFailure.NOT_FOUND
    assert qr.validate(record.token, other.id).reason is QRFailure.MISMATCH
    first = qr.validate(record.token, wo.id)
    assert first.ok and first.scan_type == QRRecord.SCAN_CHECKIN and first.technician_count == 1
    assert qr.validate(record.token, wo.id).reason is QRFailure.ALREADY_USED


def test_failed_validation_has_no_side_effects(org, work_orders):
    wo = assigned_work_order(org, work_orders)
    other = work_order_for(org, tickets=work_orders.tickets)
    record = work_orders.generate_qr(wo.id, org.user(Role.SM), technician_count=1)
    assert not work_orders.qr.validate(record.token, other.id).ok
    assert not get_db().get(QRRecord, record.id).used


def test_expiry_boundary(org, work_orders, clock):
    wo = assigned_work_order(org, work_orders)
    record = work_orders.generate_qr(wo.id, org.user(Role.SM), technician_count=1)
    late = work_orders.generate_qr(wo.id, org.user(Role.SM), technician_count=1)
    clock.advance(minutes=5)
    assert work_orders.qr.validate(record.token, wo.id).ok
    clock.advance(seconds=1)
    result = work_orders.qr.validate(late.token, wo.id)
    assert result.reason is QRFailure.EXPIRED
    with pytest.raises(WorkflowError) as exc:
        result.raise_for_failure()
    assert exc.value.error_code == QR_EXPIRED


def test_checkin_consumes_code(org, work_orders):
    wo = checked_in_work_order(org, work_orders, technician_count=3)
    assert wo.current_status == 'SERVICE_IN_PROGRESS'
    assert wo.declared_technician_count == 3
    assert wo.checkin_ts is not None
    assert [v.technician_count for v in wo.visits] == [3]
    assert work_orders.qr.active_tokens(wo.id) == []


def test_used_code_cannot_check_in_twice(org, work_orders):
    wo = assigned_work_order(org, work_orders)
    record = work_orders.generate_qr(wo.id, org.user(Role.SM), technician_count=1)
    work_orders.check_in(wo.id, org.user(Role.S2), record.token)
    with pytest.raises(WorkflowError) as exc:
        work_orders.check_in(wo.id, org.user(Role.S2), record.token)
    assert exc.value.error_code == QR_ALREADY_USED


def test_denied_checkin_leaves_code_usable(org, work_orders):
    wo = assigned_work_order(org, work_orders)
    record = work_orders.generate_qr(wo.id, org.user(Role.SM), technician_count=1)
    stranger = add_user(org, Role.S2, 's2b@demo.test')
    with pytest.raises(WorkflowError) as exc:
        work_orders.check_in(wo.id, stranger, record.token)
    assert exc.value.error_code == NOT_OWNER
    assert not get_db().get(QRRecord, record.id).used
    wo = work_orders.check_in(wo.id, org.user(Role.S2), record.token)
    assert wo.current_status == 'SERVICE_IN_PROGRESS'


def test_checkout_code_generated_while_in_service(org, work_orders):
    wo = checked_in_work_order(org, work_orders)
    record = work_orders.generate_qr(wo.id, org.user(Role.SM))
    assert record.scan_type == QRRecord.SCAN_CHECKOUT
    assert record.technician_count is None
    wo = work_orders.check_out(wo.id, org.user(Role.S2), record.token, 'FIXED')
    assert wo.current_status == 'SERVICE_COMPLETED'


def test_checkout_code_refused_for_checkin(org, work_orders):
    wo = checked_in_work_order(org, work_orders)
    record = work_orders.generate_qr(wo.id, org.user(Role.SM))
    # back to ACCEPTED via the database to simulate a stale scanner
    session = get_db()
    row = session.get(WorkOrder, wo.id)
    row.current_status = 'ACCEPTED_TECHNICIAN_ASSIGNED'
    session.commit()
    with pytest.raises(WorkflowError) as exc:
        work_orders.check_in(wo.id, org.user(Role.S2), record.token)
    assert exc.value.error_code == QR_SCAN_TYPE_MISMATCH
    assert not session.get(QRRecord, record.id).used


def test_return_for_tech_count_goes_to_store(org, work_orders):
    wo = assigned_work_order(org, work_orders)
    wo = work_orders.return_for_tech_count(wo.id, org.user(Role.S2), 'how many of us?')
    assert wo.current_status == 'ACCEPTED_TECHNICIAN_ASSIGNED'
    assert (wo.current_owner_type, wo.current_owner_id) == ('INTERNAL', org.user(Role.SM).id)
    record = work_orders.generate_qr(wo.id, org.user(Role.SM), technician_count=2)
    wo = get_db().get(WorkOrder, wo.id)
    assert (wo.current_owner_type, wo.current_owner_id) == ('VENDOR', org.user(Role.S2).id)
    actions = [a.action for a in get_db().query(AuditLog).filter(AuditLog.work_order_id == wo.id).order_by(AuditLog.id)]
    assert 'TECH_COUNT_CONFIRMED' in actions
    wo = work_orders.check_in(wo.id, org.user(Role.S2), record.token)
    assert wo.declared_technician_count == 2


def test_follow_up_visit_reuses_technician(org, work_orders):
    wo = checked_out_work_order(org, work_orders, outcome='FOLLOW_UP', comment='part on order')
    assert wo.current_status == 'FOLLOW_UP_REQUESTED'
    assert wo.current_owner_id == org.user(Role.S2).id
    record = work_orders.generate_qr(wo.id, org.user(Role.SM), technician_count=1)
    wo = get_db().get(WorkOrder, wo.id)
    assert wo.current_status == 'ACCEPTED_TECHNICIAN_ASSIGNED'
    wo = work_orders.check_in(wo.id, org.user(Role.S2), record.token)
    assert wo.current_status == 'SERVICE_IN_PROGRESS'
    assert len(wo.visits) == 2


def test_no_code_for_closed_work_order(org, work_orders):
    wo = checked_out_work_order(org, work_orders)
    with pytest.raises(WorkflowError) as exc:
        work_orders.generate_qr(wo.id, org.user(Role.SM), technician_count=1)
    assert exc.value.error_code == QR_NOT_ALLOWED


def test_purge_expired_keeps_used_tokens(org, work_orders, clock):
    wo = assigned_work_order(org, work_orders)
    used = work_orders.generate_qr(wo.id, org.user(Role.SM), technician_count=1)
    work_orders.generate_qr(wo.id, org.user(Role.SM), technician_count=1)
    work_orders.check_in(wo.id, org.user(Role.S2), used.token)
    clock.advance(minutes=10)
    assert work_orders.qr.purge_expired() == 1
    get_db().commit()
    remaining = get_db().query(QRRecord).filter(QRRecord.work_order_id == wo.id).all()
    assert [r.id for r in remaining] == [used.id]
