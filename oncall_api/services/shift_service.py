# oncall_api/services/shift_service.py
import calendar
import logging
from datetime import date, datetime, timedelta

from flask import current_app

from oncall_api.common.errors import NotFound, ValidationFailed
from oncall_api.extensions import db
from oncall_api.models.shift import (
    Shift, ON_CALL_ROLES, STATUS_SCHEDULED, STATUS_COMPLETED,
)
from oncall_api.models.swap import SwapRequest, SWAP_PENDING, SWAP_REJECTED
from oncall_api.models.user import User
from oncall_api.realtime.events import Entity, Op
from oncall_api.realtime.feed import record_change
from oncall_api.services import notification_service as notifications
from oncall_api.services.assignment_guard import ensure_assignable, evaluate_assignment

log = logging.getLogger(__name__)

REPEAT_UNITS = ("days", "weeks", "months")


def _today():
    return date.today()


def _require_role(role):
    if role not in ON_CALL_ROLES:
        raise ValidationFailed(message=f"on_call_role must be one of {', '.join(ON_CALL_ROLES)}")


def _require_user(user_id) -> User:
    user = db.session.get(User, user_id) if user_id else None
    if not user:
        raise NotFound(message="User not found")
    return user


def _should_notify(day) -> bool:
    return day >= _today() or bool(current_app.config.get("NOTIFY_PAST_SHIFTS"))


def flush_owner(*shifts):
    """Flush owner changes and drop the cached ``user`` so snapshots see the new owner."""
    db.session.flush()
    for s in shifts:
        db.session.expire(s, ["user"])


def get_shift(shift_id) -> Shift:
    s = db.session.get(Shift, shift_id)
    if not s:
        raise NotFound(message="Shift not found")
    return s


def list_shifts(start=None, end=None, user_id=None):
    q = Shift.query
    if start:
        q = q.filter(Shift.date >= start)
    if end:
        q = q.filter(Shift.date <= end)
    if user_id:
        q = q.filter(Shift.user_id == user_id)
    return q.order_by(Shift.date.asc(), Shift.on_call_role.desc()).all()


def _create(user_id, day, role, assigned_by=None, commit=True, notify=True) -> Shift:
    status = STATUS_COMPLETED if day < _today() else STATUS_SCHEDULED
    s = Shift(user_id=user_id, date=day, on_call_role=role, status=status)
    db.session.add(s)
    db.session.flush()
    record_change(Entity.SHIFT, Op.CREATE, s)
    if notify and _should_notify(day):
        notifications.shift_assigned(user_id, day.isoformat(), role, s.id, assigned_by=assigned_by)
    if commit:
        db.session.commit()
    return s


def assign_shift(user_id, day, role, assigned_by=None, commit=True, notify=True, ignore_shift_ids=()) -> Shift:
    """Put ``user_id`` on the empty (day, role) slot."""
    _require_role(role)
    _require_user(user_id)
    ensure_assignable(user_id, day, role, ignore_shift_ids=ignore_shift_ids)
    s = _create(user_id, day, role, assigned_by=assigned_by, commit=commit, notify=notify)
    log.info("assigned user %s as %s on %s (shift %s)", user_id, role, day, s.id)
    return s


def replace_shift(shift_id, user_id, assigned_by=None, commit=True, notify=True, ignore_shift_ids=()) -> Shift:
    """Hand an existing slot to another user."""
    s = get_shift(shift_id)
    _require_user(user_id)
    if s.user_id == user_id:
        return s
    ensure_assignable(user_id, s.date, s.on_call_role, replace=True,
                      ignore_shift_ids=[s.id, *ignore_shift_ids])
    s.user_id = user_id
    if s.date >= _today():
        s.status = STATUS_SCHEDULED
    flush_owner(s)
    record_change(Entity.SHIFT, Op.UPDATE, s)
    if notify and _should_notify(s.date):
        notifications.shift_assigned(user_id, s.date.isoformat(), s.on_call_role, s.id,
                                     assigned_by=assigned_by, replacement=True)
    if commit:
        db.session.commit()
    log.info("shift %s reassigned to user %s", s.id, user_id)
    return s


def upsert_shift(day, role, user_id, assigned_by=None, commit=True, notify=True, ignore_shift_ids=()):
    """
    Create the (day, role) shift or move it to ``user_id``.

    Returns ``(shift, outcome)`` with outcome one of created|updated|unchanged.
    Guard rejections propagate as AssignmentRejected.
    """
    _require_role(role)
    existing = Shift.query.filter_by(date=day, on_call_role=role).first()
    if existing is None:
        return assign_shift(user_id, day, role, assigned_by=assigned_by, commit=commit,
                            notify=notify, ignore_shift_ids=ignore_shift_ids), "created"
    if existing.user_id == user_id:
        return existing, "unchanged"
    return replace_shift(existing.id, user_id, assigned_by=assigned_by, commit=commit,
                         notify=notify, ignore_shift_ids=ignore_shift_ids), "updated"


def _close_swaps_for(s):
    """
    Settle swap requests that point at a shift about to be deleted.

    Requests offering the shift go with it. Pending requests that asked for
    it are rejected; the link is cleared on every request that asked for it.
    """
    day = s.date.isoformat()
    offered = SwapRequest.query.filter(SwapRequest.requester_shift_id == s.id).all()
    for sr in offered:
        record_change(Entity.SWAP, Op.DELETE, None, entity_id=sr.id, snapshot=sr.to_dict())
        if sr.status == SWAP_PENDING and sr.target_user_id:
            notifications.system_message(sr.target_user_id, "Swap Request Withdrawn",
                                         f"The {day} shift offered to you is no longer on the schedule",
                                         related_id=sr.id)
        db.session.delete(sr)

    wanted = SwapRequest.query.filter(SwapRequest.target_shift_id == s.id).all()
    for sr in wanted:
        sr.target_shift_id = None
        if sr.status == SWAP_PENDING:
            sr.status = SWAP_REJECTED
            sr.responded_at = datetime.utcnow()
            sr.response_notes = "Target shift was removed from the schedule"
            notifications.system_message(sr.requester_user_id, "Swap Request Closed",
                                         f"Your swap request for the {day} shift was closed because "
                                         f"that shift is no longer on the schedule",
                                         related_id=sr.id)
    if wanted:
        db.session.flush()
    for sr in wanted:
        record_change(Entity.SWAP, Op.UPDATE, sr)
    return len(offered) + len(wanted)


def unassign_shift(shift_id, commit=True):
    s = get_shift(shift_id)
    snap = s.to_dict()
    _close_swaps_for(s)
    db.session.delete(s)
    record_change(Entity.SHIFT, Op.DELETE, None, entity_id=snap["id"], snapshot=snap)
    if commit:
        db.session.commit()
    log.info("shift %s removed (%s %s)", snap["id"], snap["date"], snap["on_call_role"])
    return snap


# ---------- daily completion job ----------

def _past_scheduled(today):
    return Shift.query.filter(Shift.status == STATUS_SCHEDULED, Shift.date < today)


def pending_completion_count(today=None) -> int:
    return _past_scheduled(today or _today()).count()


def auto_complete_shifts(today=None) -> dict:
    today = today or _today()
    rows = _past_scheduled(today).order_by(Shift.date.asc()).all()
    for s in rows:
        s.status = STATUS_COMPLETED
    db.session.flush()
    for s in rows:
        record_change(Entity.SHIFT, Op.UPDATE, s)
    db.session.commit()
    log.info("auto-complete: %s shifts before %s marked COMPLETED", len(rows), today)
    return {"completed": len(rows), "as_of": today.isoformat()}


# ---------- repeat ----------

def _add_months(d, months):
    m = d.month - 1 + months
    y = d.year + m // 12
    m = m % 12 + 1
    return date(y, m, min(d.day, calendar.monthrange(y, m)[1]))


def _target_end(target_start, duration, unit):
    try:
        n = int(duration)
    except (TypeError, ValueError):
        raise ValidationFailed(message="repeat_duration must be an integer")
    if n < 1:
        raise ValidationFailed(message="repeat_duration must be >= 1")
    if unit == "days":
        return target_start + timedelta(days=n - 1)
    if unit == "weeks":
        return target_start + timedelta(days=n * 7 - 1)
    if unit == "months":
        return _add_months(target_start, n) - timedelta(days=1)
    raise ValidationFailed(message="Invalid repeat unit. Must be days, weeks, or months")


def repeat_shifts(source_start, source_end, target_start, target_end=None,
                  repeat_duration=None, repeat_unit=None, assigned_by="System (Repeat Schedule)") -> dict:
    """
    Copy the source range's pattern cyclically over the target range.

    Occupied target slots are skipped; so are assignments the guard rejects
    (double-booking, leave). Everything created commits together.
    """
    if not (source_start and source_end and target_start):
        raise ValidationFailed(message="Source start date, source end date, and target start date are required")
    if source_start >= source_end:
        raise ValidationFailed(message="Source start date must be before source end date")

    if target_end is not None:
        if target_start >= target_end:
            raise ValidationFailed(message="Target start date must be before target end date")
    else:
        if not (repeat_duration and repeat_unit):
            raise ValidationFailed(message="Either target end date or repeat duration with unit must be provided")
        target_end = _target_end(target_start, repeat_duration, repeat_unit)

    source = list_shifts(source_start, source_end)
    if not source:
        raise ValidationFailed(message="No shifts found in the source date range")

    pattern = {}
    for s in source:
        if s.user_id is None:
            continue
        pattern.setdefault((s.date - source_start).days, []).append((s.user_id, s.on_call_role))
    cycle = (source_end - source_start).days + 1

    created, skipped_occupied, skipped_conflicts, attempted = 0, 0, [], 0
    day, idx = target_start, 0
    while day <= target_end:
        for user_id, role in pattern.get(idx % cycle, []):
            attempted += 1
            reason = evaluate_assignment(user_id, day, role)
            if reason == "SLOT_OCCUPIED":
                skipped_occupied += 1
                continue
            if reason:
                skipped_conflicts.append({"date": day.isoformat(), "on_call_role": role,
                                          "user_id": user_id, "reason": reason})
                continue
            _create(user_id, day, role, assigned_by=assigned_by, commit=False)
            created += 1
        day += timedelta(days=1)
        idx += 1

    db.session.commit()
    log.info("repeat: %s created, %s occupied, %s conflicts over %s..%s",
             created, skipped_occupied, len(skipped_conflicts), target_start, target_end)
    return {
        "created_shifts": created,
        "skipped_duplicates": skipped_occupied,
        "skipped_conflicts": skipped_conflicts,
        "total_attempted": attempted,
        "source_pattern": [{"day": k, "shifts": len(v)} for k, v in sorted(pattern.items())],
        "target_date_range": {"start": target_start.isoformat(), "end": target_end.isoformat()},
    }


# ---------- offboarding ----------

def orphan_user_shifts(user_id) -> int:
    """Detach every shift from ``user_id``; the slots stay on the calendar. Caller commits."""
    rows = Shift.query.filter(Shift.user_id == user_id).all()
    for s in rows:
        s.user_id = None
    flush_owner(*rows)
    for s in rows:
        record_change(Entity.SHIFT, Op.UPDATE, s)
    return len(rows)
