from maintflow.errors import OWNERSHIP_LOCKED, WORK_ORDERS_ACTIVE
from maintflow.workflow.ownership import (
    all_work_orders_terminal, check_archivable, check_ticket_owner_change, is_ownership_locked,
)

WOIP = 'WORK_ORDER_IN_PROGRESS'


def test_no_work_orders_never_locked():
    assert not is_ownership_locked(WOIP, [])
    assert check_ticket_owner_change(WOIP, [], 1, 2, 'SUBMIT').ok


def test_owner_change_blocked_while_work_orders_active():
    verdict = check_ticket_owner_change(WOIP, ['CREATED'], 1, 2, 'RETURN')
    assert not verdict.ok
    assert verdict.error_code == OWNERSHIP_LOCKED


def test_locked_even_when_all_terminal_in_progress_status():
    assert is_ownership_locked(WOIP, ['REJECTED'])
    assert not check_ticket_owner_change(WOIP, ['REJECTED'], 1, 2, 'REASSIGN').ok


def test_keeping_current_owner_is_allowed():
    assert check_ticket_owner_change(WOIP, ['SERVICE_IN_PROGRESS'], 5, '5', 'CREATE_WORK_ORDER').ok


def test_clearing_owner_only_allowed_for_archive():
    assert check_ticket_owner_change(WOIP, ['COST_PROPOSAL_APPROVED'], 5, None, 'archive').ok
    verdict = check_ticket_owner_change(WOIP, ['CREATED'], 5, None, 'REJECT')
    assert verdict.error_code == OWNERSHIP_LOCKED


def test_null_current_owner_cannot_be_replaced_while_locked():
    assert not check_ticket_owner_change(WOIP, ['CREATED'], None, 4, 'ANY').ok


def test_other_status_with_only_terminal_work_orders_unlocked():
    assert not is_ownership_locked('COST_ESTIMATION_APPROVED', ['CLOSED_WITHOUT_COST'])


def test_archivable_only_when_all_terminal():
    assert check_archivable([]).ok
    assert check_archivable(['COST_PROPOSAL_APPROVED', 'REJECTED']).ok
    verdict = check_archivable(['COST_PROPOSAL_APPROVED', 'SERVICE_COMPLETED'])
    assert verdict.error_code == WORK_ORDERS_ACTIVE
    assert not all_work_orders_terminal(['NEW_WO_NEEDED'])
