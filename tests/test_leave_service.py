from datetime import date, timedelta

import pytest

from oncall_api.common.errors import Conflict, Forbidden, InsufficientBalance, ValidationFailed
from oncall_api.extensions import db
from oncall_api.models.leave import LeaveApprovalAction
from oncall_api.models.notification import Notification
from oncall_api.models.user import User
from oncall_api.services import leave_service


def _d(n):
    return date.today() + timedelta(days=n)


def test_inclusive_days():
    assert leave_service.inclusive_days(date(2030, 3, 1), date(2030, 3, 1)) == 1
    assert leave_service.inclusive_days(date(2030, 3, 1), date(2030, 3, 3)) == 3


def test_apply_notifies_manager(make_user):
    mgr = make_user("boss", role="MANAGER")
    emp = make_user("emp", manager=mgr)
    lr = leave_service.apply_leave(emp.id, "SICK", _d(1), _d(2), "flu")
    assert lr.status == "PENDING"
    n = Notification.query.filter_by(user_id=mgr.id).one()
    assert n.type == "LEAVE_REQUEST"
    assert n.message == f"Emp Test has requested SICK leave from {_d(1).isoformat()} to {_d(2).isoformat()}"


def test_apply_without_manager_notifies_admins(make_user):
    admin = make_user("root", role="ADMIN")
    emp = make_user("emp")
    leave_service.apply_leave(emp.id, "PAID", _d(1), _d(1))
    assert Notification.query.filter_by(user_id=admin.id).count() == 1


def test_apply_validates(make_user):
    emp = make_user()
    with pytest.raises(ValidationFailed):
        leave_service.apply_leave(emp.id, "HOLIDAY", _d(1), _d(2))
    with pytest.raises(ValidationFailed):
        leave_service.apply_leave(emp.id, "PAID", _d(3), _d(2))


def test_approve_debits_then_blocks_when_short(make_user):
    mgr = make_user("boss", role="MANAGER")
    emp = make_user("emp", manager=mgr, paid_leaves=5)

    first = leave_service.apply_leave(emp.id, "PAID", _d(10), _d(12))
    leave_service.approve_leave(first.id, mgr.id, "enjoy")
    assert db.session.get(User, emp.id).paid_leaves == 2
    assert first.status == "APPROVED" and first.manager_comment == "enjoy"

    second = leave_service.apply_leave(emp.id, "PAID", _d(20), _d(22))
    with pytest.raises(InsufficientBalance) as ei:
        leave_service.approve_leave(second.id, mgr.id)
    assert ei.value.status_code == 422
    db.session.rollback()

    assert db.session.get(User, emp.id).paid_leaves == 2
    assert leave_service.get_leave(second.id).status == "PENDING"
    actions = [a.action for a in LeaveApprovalAction.query.filter_by(leave_request_id=second.id)]
    assert actions == ["applied"]


def test_approve_notifies_with_comment(make_user):
    mgr = make_user("boss", role="MANAGER")
    emp = make_user("emp", manager=mgr)
    lr = leave_service.apply_leave(emp.id, "COMP_OFF", _d(1), _d(1))
    with pytest.raises(InsufficientBalance):
        leave_service.approve_leave(lr.id, mgr.id)
    lr = leave_service.apply_leave(emp.id, "SICK", _d(3), _d(3))
    leave_service.approve_leave(lr.id, mgr.id, "get well")
    n = Notification.query.filter_by(user_id=emp.id, type="LEAVE_APPROVED").one()
    assert n.title == "Leave Request Approved"
    assert n.message.endswith("has been approved. Manager comment: get well")


def test_reject_keeps_balance(make_user):
    mgr = make_user("boss", role="MANAGER")
    emp = make_user("emp", manager=mgr)
    lr = leave_service.apply_leave(emp.id, "PAID", _d(1), _d(4))
    leave_service.reject_leave(lr.id, mgr.id, "busy week")
    assert lr.status == "REJECTED"
    assert db.session.get(User, emp.id).paid_leaves == 20
    with pytest.raises(Conflict):
        leave_service.approve_leave(lr.id, mgr.id)


def test_cancel_only_by_requester_and_only_pending(make_user):
    mgr = make_user("boss", role="MANAGER")
    emp = make_user("emp", manager=mgr)
    lr = leave_service.apply_leave(emp.id, "PAID", _d(1), _d(1))
    with pytest.raises(Forbidden):
        leave_service.cancel_leave(lr.id, mgr.id)
    leave_service.cancel_leave(lr.id, emp.id)
    assert lr.status == "CANCELLED"
    with pytest.raises(Conflict):
        leave_service.cancel_leave(lr.id, emp.id)


def test_comment_allowed_on_resolved(make_user):
    mgr = make_user("boss", role="MANAGER")
    emp = make_user("emp", manager=mgr)
    lr = leave_service.apply_leave(emp.id, "PAID", _d(1), _d(1))
    leave_service.approve_leave(lr.id, mgr.id)
    leave_service.comment_leave(lr.id, mgr.id, "noted for payroll")
    assert lr.status == "APPROVED"
    assert lr.manager_comment == "noted for payroll"
    with pytest.raises(ValidationFailed):
        leave_service.comment_leave(lr.id, mgr.id, "   ")


def test_on_leave_queries(make_user, make_leave):
    a, b = make_user("alice"), make_user("bob")
    make_leave(a, _d(1), _d(3))
    make_leave(b, _d(3), _d(4), type="SICK")
    make_leave(b, _d(1), _d(1), status="REJECTED")

    assert leave_service.is_user_on_leave(a.id, _d(2))
    assert not leave_service.is_user_on_leave(b.id, _d(1))
    assert len(leave_service.approved_leaves_between(_d(0), _d(2))) == 1

    grid = leave_service.employees_on_leave(_d(2), _d(4))
    assert [e["user_id"] for e in grid[_d(2).isoformat()]] == [a.id]
    assert sorted(e["user_id"] for e in grid[_d(3).isoformat()]) == [a.id, b.id]
    assert grid[_d(4).isoformat()][0]["type"] == "SICK"


def test_manager_cannot_approve_own_leave(make_user):
    admin = make_user("root", role="ADMIN")
    mgr = make_user("boss", role="MANAGER", paid_leaves=5)
    lr = leave_service.apply_leave(mgr.id, "PAID", _d(4), _d(5))
    with pytest.raises(Forbidden):
        leave_service.approve_leave(lr.id, mgr.id)
    assert leave_service.get_leave(lr.id).status == "PENDING"
    assert db.session.get(User, mgr.id).paid_leaves == 5

    leave_service.approve_leave(lr.id, admin.id)
    assert db.session.get(User, mgr.id).paid_leaves == 3
