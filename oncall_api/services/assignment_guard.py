# oncall_api/services/assignment_guard.py
"""
Checks run before a user is put on a (date, role) slot.

Order matters: an occupied slot is reported before double-booking, and
double-booking before leave. Nothing here writes to the session.
"""
from datetime import date
from typing import Iterable, Optional

from oncall_api.common.errors import AssignmentRejected
from oncall_api.models.leave import LeaveRequest, LEAVE_APPROVED
from oncall_api.models.shift import Shift, ROLE_PRIMARY, ROLE_BACKUP, ON_CALL_ROLES

SLOT_OCCUPIED = "SLOT_OCCUPIED"
DOUBLE_BOOKED = "DOUBLE_BOOKED"
ON_LEAVE = "ON_LEAVE"

_MESSAGES = {
    SLOT_OCCUPIED: "{role} slot on {day} is already assigned",
    DOUBLE_BOOKED: "User already holds the {other} shift on {day}",
    ON_LEAVE: "User is on approved leave on {day}",
}


def opposite_role(role: str) -> str:
    if role == ROLE_PRIMARY:
        return ROLE_BACKUP
    if role == ROLE_BACKUP:
        return ROLE_PRIMARY
    raise ValueError(f"unknown on-call role: {role!r}")


def evaluate_assignment(user_id: int, day: date, role: str, *,
                        replace: bool = False,
                        ignore_shift_ids: Iterable[int] = ()) -> Optional[str]:
    """Return None when the assignment is allowed, else a rejection code."""
    if role not in ON_CALL_ROLES:
        raise ValueError(f"unknown on-call role: {role!r}")
    ignore = [i for i in ignore_shift_ids if i is not None]

    if not replace:
        q = Shift.query.filter(Shift.date == day, Shift.on_call_role == role)
        if ignore:
            q = q.filter(Shift.id.notin_(ignore))
        if q.first() is not None:
            return SLOT_OCCUPIED

    q = Shift.query.filter(
        Shift.date == day,
        Shift.on_call_role == opposite_role(role),
        Shift.user_id == user_id,
    )
    if ignore:
        q = q.filter(Shift.id.notin_(ignore))
    if q.first() is not None:
        return DOUBLE_BOOKED

    on_leave = LeaveRequest.query.filter(
        LeaveRequest.user_id == user_id,
        LeaveRequest.status == LEAVE_APPROVED,
        LeaveRequest.start_date <= day,
        LeaveRequest.end_date >= day,
    ).first()
    if on_leave is not None:
        return ON_LEAVE

    return None


def rejection_message(reason: str, day: date, role: str) -> str:
    return _MESSAGES[reason].format(role=role, other=opposite_role(role), day=day.isoformat())


def ensure_assignable(user_id: int, day: date, role: str, *,
                      replace: bool = False,
                      ignore_shift_ids: Iterable[int] = ()):
    reason = evaluate_assignment(user_id, day, role, replace=replace, ignore_shift_ids=ignore_shift_ids)
    if reason:
        raise AssignmentRejected(
            code=reason,
            message=rejection_message(reason, day, role),
            payload={"user_id": user_id, "date": day.isoformat(), "on_call_role": role},
        )
