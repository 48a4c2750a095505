# oncall_api/services/leave_service.py
import logging
from datetime import datetime

from oncall_api.common.dates import daterange
from oncall_api.common.errors import Conflict, Forbidden, InsufficientBalance, NotFound, ValidationFailed
from oncall_api.extensions import db
from oncall_api.models.leave import (
    LeaveRequest, LeaveApprovalAction, LEAVE_TYPES,
    LEAVE_PENDING, LEAVE_APPROVED, LEAVE_REJECTED, LEAVE_CANCELLED,
)
from oncall_api.models.user import User, BALANCE_FIELDS, ROLE_ADMIN
from oncall_api.realtime.events import Entity, Op
from oncall_api.realtime.feed import record_change
from oncall_api.services import notification_service as notifications

log = logging.getLogger(__name__)


def inclusive_days(start, end) -> int:
    return (end - start).days + 1


def get_leave(leave_id) -> LeaveRequest:
    lr = db.session.get(LeaveRequest, leave_id)
    if not lr:
        raise NotFound(message="Leave request not found")
    return lr


def _audit(lr, action, actor_id, comment=None):
    db.session.add(LeaveApprovalAction(
        leave_request_id=lr.id,
        action=action,
        comment=comment,
        acted_by_user_id=actor_id,
        acted_at=datetime.utcnow(),
    ))


def _approvers_for(user: User):
    if user.manager_id:
        return [user.manager_id]
    return [u.id for u in User.query.filter_by(role=ROLE_ADMIN).all() if u.id != user.id]


def _require_pending(lr, verb):
    if lr.status != LEAVE_PENDING:
        raise Conflict(code="INVALID_STATE", message=f"Cannot {verb} request in '{lr.status}' status")


def list_leaves(user_id=None, status=None, user_ids=None):
    q = LeaveRequest.query
    if user_id:
        q = q.filter(LeaveRequest.user_id == user_id)
    if user_ids is not None:
        q = q.filter(LeaveRequest.user_id.in_(list(user_ids)))
    if status:
        q = q.filter(LeaveRequest.status == status)
    return q.order_by(LeaveRequest.created_at.desc(), LeaveRequest.id.desc()).all()


def apply_leave(user_id, leave_type, start, end, reason=None) -> LeaveRequest:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFound(message="User not found")
    if leave_type not in LEAVE_TYPES:
        raise ValidationFailed(message=f"type must be one of {', '.join(LEAVE_TYPES)}")
    if not (start and end):
        raise ValidationFailed(message="Invalid dates")
    if start > end:
        raise ValidationFailed(message="Start date cannot be after end date")

    lr = LeaveRequest(user_id=user_id, type=leave_type, start_date=start, end_date=end,
                      reason=reason, status=LEAVE_PENDING)
    db.session.add(lr)
    db.session.flush()
    _audit(lr, "applied", user_id, reason)
    record_change(Entity.LEAVE, Op.CREATE, lr)
    for approver in _approvers_for(user):
        notifications.leave_requested(approver, user.full_name, leave_type,
                                      start.isoformat(), end.isoformat(), lr.id)
    db.session.commit()
    log.info("leave %s applied by user %s (%s %s..%s)", lr.id, user_id, leave_type, start, end)
    return lr


def approve_leave(leave_id, actor_id, comment=None) -> LeaveRequest:
    """
    Approve a PENDING request and debit the matching balance.

    Short balance raises InsufficientBalance before anything is written.
    """
    lr = get_leave(leave_id)
    _require_pending(lr, "approve")
    if actor_id == lr.user_id:
        raise Forbidden(message="You cannot approve your own leave request")

    user = db.session.get(User, lr.user_id)
    days = inclusive_days(lr.start_date, lr.end_date)
    available = user.balance_for(lr.type)
    if available < days:
        raise InsufficientBalance(
            message=f"Insufficient balance. Available: {available}, Requested: {days}",
            payload={"available": available, "requested": days, "type": lr.type},
        )

    field = BALANCE_FIELDS[lr.type]
    setattr(user, field, available - days)
    lr.status = LEAVE_APPROVED
    lr.approved_by_user_id = actor_id
    lr.responded_at = datetime.utcnow()
    if comment:
        lr.manager_comment = comment
    _audit(lr, "approved", actor_id, comment)
    db.session.flush()
    record_change(Entity.LEAVE, Op.UPDATE, lr)
    record_change(Entity.USER, Op.UPDATE, user)
    notifications.leave_responded(lr.user_id, LEAVE_APPROVED, lr.type,
                                  lr.start_date.isoformat(), lr.end_date.isoformat(),
                                  lr.id, comment)
    db.session.commit()
    log.info("leave %s approved by %s; %s %s -> %s", lr.id, actor_id, field, available, available - days)
    return lr


def reject_leave(leave_id, actor_id, comment=None) -> LeaveRequest:
    lr = get_leave(leave_id)
    _require_pending(lr, "reject")
    lr.status = LEAVE_REJECTED
    lr.approved_by_user_id = actor_id
    lr.responded_at = datetime.utcnow()
    if comment:
        lr.manager_comment = comment
    _audit(lr, "rejected", actor_id, comment)
    db.session.flush()
    record_change(Entity.LEAVE, Op.UPDATE, lr)
    notifications.leave_responded(lr.user_id, LEAVE_REJECTED, lr.type,
                                  lr.start_date.isoformat(), lr.end_date.isoformat(),
                                  lr.id, comment)
    db.session.commit()
    log.info("leave %s rejected by %s", lr.id, actor_id)
    return lr


def cancel_leave(leave_id, actor_id) -> LeaveRequest:
    """Requester withdraws a PENDING request. Balances are untouched."""
    lr = get_leave(leave_id)
    if lr.user_id != actor_id:
        raise Forbidden(message="Only the requester can cancel a leave request")
    _require_pending(lr, "cancel")
    lr.status = LEAVE_CANCELLED
    _audit(lr, "cancelled", actor_id)
    db.session.flush()
    record_change(Entity.LEAVE, Op.UPDATE, lr)
    db.session.commit()
    return lr


def comment_leave(leave_id, actor_id, comment) -> LeaveRequest:
    comment = (comment or "").strip()
    if not comment:
        raise ValidationFailed(message="comment is required")
    lr = get_leave(leave_id)
    lr.manager_comment = comment
    _audit(lr, "commented", actor_id, comment)
    db.session.flush()
    record_change(Entity.LEAVE, Op.UPDATE, lr)
    db.session.commit()
    return lr


# ---------- queries ----------

def is_user_on_leave(user_id, day) -> bool:
    return LeaveRequest.query.filter(
        LeaveRequest.user_id == user_id,
        LeaveRequest.status == LEAVE_APPROVED,
        LeaveRequest.start_date <= day,
        LeaveRequest.end_date >= day,
    ).first() is not None


def approved_leaves_between(start, end):
    """APPROVED leaves overlapping [start, end]."""
    return (LeaveRequest.query
            .filter(LeaveRequest.status == LEAVE_APPROVED,
                    LeaveRequest.start_date <= end,
                    LeaveRequest.end_date >= start)
            .order_by(LeaveRequest.start_date.asc())
            .all())


def employees_on_leave(start, end) -> dict:
    """{iso date: [{user_id, name, type, leave_id}]} for every date in range."""
    out = {d.isoformat(): [] for d in daterange(start, end)}
    for lr in approved_leaves_between(start, end):
        for d in daterange(max(lr.start_date, start), min(lr.end_date, end)):
            out[d.isoformat()].append({
                "user_id": lr.user_id,
                "name": lr.user.full_name if lr.user else None,
                "type": lr.type,
                "leave_id": lr.id,
            })
    return out


def balances_for(user: User) -> dict:
    return {t: user.balance_for(t) for t in LEAVE_TYPES}
