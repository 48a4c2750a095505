from datetime import date, timedelta

import pytest

from oncall_api.common.errors import AssignmentRejected
from oncall_api.services.assignment_guard import (
    evaluate_assignment, ensure_assignable, opposite_role,
    SLOT_OCCUPIED, DOUBLE_BOOKED, ON_LEAVE,
)


def _d(n):
    return date.today() + timedelta(days=n)


def test_opposite_role():
    assert opposite_role("PRIMARY") == "BACKUP"
    assert opposite_role("BACKUP") == "PRIMARY"
    with pytest.raises(ValueError):
        opposite_role("ON_DUTY")


def test_empty_slot_is_allowed(make_user):
    u = make_user()
    assert evaluate_assignment(u.id, _d(3), "PRIMARY") is None


def test_occupied_slot_rejected_unless_replacing(make_user, make_shift):
    a, b = make_user(), make_user()
    make_shift(a, _d(3), "PRIMARY")
    assert evaluate_assignment(b.id, _d(3), "PRIMARY") == SLOT_OCCUPIED
    assert evaluate_assignment(b.id, _d(3), "PRIMARY", replace=True) is None


def test_double_booking_rejected(make_user, make_shift):
    a = make_user()
    make_shift(a, _d(3), "PRIMARY")
    assert evaluate_assignment(a.id, _d(3), "BACKUP") == DOUBLE_BOOKED
    # another day is fine
    assert evaluate_assignment(a.id, _d(4), "BACKUP") is None


def test_approved_leave_blocks_pending_does_not(make_user, make_leave):
    a, b = make_user(), make_user()
    make_leave(a, _d(2), _d(5))
    make_leave(b, _d(2), _d(5), status="PENDING")
    assert evaluate_assignment(a.id, _d(4), "PRIMARY") == ON_LEAVE
    assert evaluate_assignment(a.id, _d(6), "PRIMARY") is None
    assert evaluate_assignment(b.id, _d(4), "PRIMARY") is None


def test_reasons_checked_in_order(make_user, make_shift, make_leave):
    a, b = make_user(), make_user()
    make_shift(b, _d(3), "PRIMARY")
    make_shift(a, _d(3), "BACKUP")
    make_leave(a, _d(3), _d(3))
    assert evaluate_assignment(a.id, _d(3), "PRIMARY") == SLOT_OCCUPIED
    assert evaluate_assignment(a.id, _d(3), "PRIMARY", replace=True) == DOUBLE_BOOKED


def test_ignore_shift_ids_skips_exchanged_shift(make_user, make_shift):
    a = make_user()
    s = make_shift(a, _d(3), "PRIMARY")
    assert evaluate_assignment(a.id, _d(3), "BACKUP", ignore_shift_ids=[s.id]) is None


def test_ensure_assignable_raises_409_with_reason(make_user, make_shift):
    a = make_user()
    make_shift(a, _d(3), "PRIMARY")
    with pytest.raises(AssignmentRejected) as ei:
        ensure_assignable(a.id, _d(3), "BACKUP")
    assert ei.value.status_code == 409
    assert ei.value.code == DOUBLE_BOOKED
    assert "PRIMARY" in ei.value.message
