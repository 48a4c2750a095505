from datetime import date, timedelta

import pytest

from oncall_api.common.errors import AssignmentRejected, ValidationFailed
from oncall_api.models.change_event import ChangeEvent
from oncall_api.models.notification import Notification
from oncall_api.models.shift import Shift
from oncall_api.services import shift_service


def _d(n):
    return date.today() + timedelta(days=n)


def test_assign_creates_scheduled_and_notifies(make_user):
    a = make_user("alice")
    s = shift_service.assign_shift(a.id, _d(2), "PRIMARY", assigned_by="Team Manager")
    assert s.status == "SCHEDULED"
    n = Notification.query.filter_by(user_id=a.id).one()
    assert n.type == "SHIFT_ASSIGNED"
    assert n.message == f"You have been assigned as primary on-call for {_d(2).isoformat()} by Team Manager"
    ev = ChangeEvent.query.filter_by(entity="SHIFT", op="CREATE").one()
    assert ev.entity_id == s.id and ev.payload["username"] == "alice"


def test_assign_in_past_is_completed_without_notification(make_user):
    a = make_user()
    s = shift_service.assign_shift(a.id, _d(-3), "BACKUP")
    assert s.status == "COMPLETED"
    assert Notification.query.count() == 0


def test_assign_rejects_occupied_slot(make_user):
    a, b = make_user(), make_user()
    shift_service.assign_shift(a.id, _d(2), "PRIMARY")
    with pytest.raises(AssignmentRejected) as ei:
        shift_service.assign_shift(b.id, _d(2), "PRIMARY")
    assert ei.value.code == "SLOT_OCCUPIED"
    assert Shift.query.count() == 1


def test_replace_moves_owner_and_marks_replacement(make_user):
    a, b = make_user(), make_user("bob")
    s = shift_service.assign_shift(a.id, _d(2), "PRIMARY")
    shift_service.replace_shift(s.id, b.id)
    assert Shift.query.get(s.id).user_id == b.id
    msg = Notification.query.filter_by(user_id=b.id).one().message
    assert msg.endswith("(replacement)")
    upd = ChangeEvent.query.filter_by(entity="SHIFT", op="UPDATE").one()
    assert upd.payload["user_id"] == b.id and upd.payload["username"] == "bob"


def test_upsert_outcomes(make_user):
    a, b = make_user(), make_user()
    _, o1 = shift_service.upsert_shift(_d(1), "BACKUP", a.id)
    _, o2 = shift_service.upsert_shift(_d(1), "BACKUP", a.id)
    _, o3 = shift_service.upsert_shift(_d(1), "BACKUP", b.id)
    assert (o1, o2, o3) == ("created", "unchanged", "updated")


def test_unassign_records_delete_snapshot(make_user):
    a = make_user()
    s = shift_service.assign_shift(a.id, _d(1), "PRIMARY")
    sid = s.id
    snap = shift_service.unassign_shift(sid)
    assert Shift.query.get(sid) is None
    ev = ChangeEvent.query.filter_by(op="DELETE").one()
    assert ev.entity_id == sid and ev.payload == snap


def test_auto_complete_only_touches_past_scheduled(make_user, make_shift):
    a = make_user()
    old = make_shift(a, _d(-2), "PRIMARY")
    today = make_shift(a, _d(0), "BACKUP")
    future = make_shift(a, _d(5), "PRIMARY")
    assert shift_service.pending_completion_count() == 1
    res = shift_service.auto_complete_shifts()
    assert res["completed"] == 1
    assert Shift.query.get(old.id).status == "COMPLETED"
    assert Shift.query.get(today.id).status == "SCHEDULED"
    assert Shift.query.get(future.id).status == "SCHEDULED"
    assert shift_service.pending_completion_count() == 0


def test_repeat_copies_pattern_and_skips_conflicts(make_user, make_shift, make_leave):
    a, b = make_user(), make_user()
    make_shift(a, _d(10), "PRIMARY")
    make_shift(b, _d(10), "BACKUP")
    make_shift(b, _d(11), "PRIMARY")
    # target day 2 is already taken; b is away on target day 1
    make_shift(a, _d(22), "PRIMARY")
    make_leave(b, _d(20), _d(20))

    res = shift_service.repeat_shifts(_d(10), _d(11), _d(20), repeat_duration=4, repeat_unit="days")

    assert res["target_date_range"] == {"start": _d(20).isoformat(), "end": _d(23).isoformat()}
    assert res["total_attempted"] == 6
    assert res["skipped_duplicates"] == 1
    assert [c["reason"] for c in res["skipped_conflicts"]] == ["ON_LEAVE"]
    assert res["created_shifts"] == 4
    assert Shift.query.filter_by(date=_d(21), on_call_role="PRIMARY").one().user_id == b.id
    assert Shift.query.filter_by(date=_d(22), on_call_role="BACKUP").one().user_id == b.id


def test_repeat_validates_inputs(make_user, make_shift):
    with pytest.raises(ValidationFailed):
        shift_service.repeat_shifts(_d(5), _d(1), _d(10), repeat_duration=1, repeat_unit="days")
    with pytest.raises(ValidationFailed):
        shift_service.repeat_shifts(_d(1), _d(5), _d(10))
    a = make_user()
    make_shift(a, _d(1), "PRIMARY")
    with pytest.raises(ValidationFailed):
        shift_service.repeat_shifts(_d(1), _d(2), _d(10), repeat_duration=1, repeat_unit="fortnights")


def test_repeat_months_unit_end_date(make_user, make_shift):
    a = make_user()
    make_shift(a, date(2031, 1, 1), "PRIMARY")
    res = shift_service.repeat_shifts(date(2031, 1, 1), date(2031, 1, 2), date(2031, 1, 31),
                                      repeat_duration=1, repeat_unit="months")
    assert res["target_date_range"]["end"] == "2031-02-27"
