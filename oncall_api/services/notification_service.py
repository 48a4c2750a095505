# oncall_api/services/notification_service.py
import logging

from sqlalchemy.exc import SQLAlchemyError

from oncall_api.common.errors import NotFound, Forbidden
from oncall_api.extensions import db
from oncall_api.models.notification import Notification

log = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 50


def notify(user_id, type, title, message, related_id=None):
    """
    Queue a notification on the current session.

    Runs inside a SAVEPOINT: a failure is logged and rolled back on its own,
    the caller's unit of work carries on. Returns the row or None.
    """
    if not user_id:
        return None
    try:
        with db.session.begin_nested():
            n = Notification(user_id=user_id, type=type, title=title,
                             message=message, related_id=related_id, read=False)
            db.session.add(n)
        return n
    except SQLAlchemyError as e:
        log.warning("notification for user %s not stored (%s): %s", user_id, title, e)
        return None


# ---------- message helpers ----------

def _role_text(role):
    return "primary on-call" if role == "PRIMARY" else "backup on-call"


def leave_requested(manager_id, employee_name, leave_type, start, end, leave_id):
    return notify(
        manager_id, "LEAVE_REQUEST", "New Leave Request",
        f"{employee_name} has requested {leave_type} leave from {start} to {end}",
        related_id=leave_id,
    )


def leave_responded(user_id, status, leave_type, start, end, leave_id, manager_comment=None):
    msg = f"Your {leave_type} leave request from {start} to {end} has been {status.lower()}."
    if manager_comment:
        msg += f" Manager comment: {manager_comment}"
    approved = status == "APPROVED"
    return notify(
        user_id,
        "LEAVE_APPROVED" if approved else "LEAVE_REJECTED",
        f"Leave Request {'Approved' if approved else 'Rejected'}",
        msg,
        related_id=leave_id,
    )


def swap_requested(target_user_id, requester_name, requester_date, target_date, swap_id):
    if target_date:
        msg = f"{requester_name} wants to swap their {requester_date} shift with your {target_date} shift"
    else:
        msg = f"{requester_name} is offering their {requester_date} shift for swap"
    return notify(target_user_id, "SHIFT_SWAPPED", "New Shift Swap Request", msg, related_id=swap_id)


def swap_responded(requester_id, status, shift_date, swap_id, responder_name):
    accepted = status == "APPROVED"
    return notify(
        requester_id, "SHIFT_SWAPPED",
        f"Swap Request {'Accepted' if accepted else 'Declined'}",
        f"{responder_name} has {'accepted' if accepted else 'declined'} your shift swap request for {shift_date}",
        related_id=swap_id,
    )


def shift_assigned(user_id, shift_date, role, shift_id, assigned_by=None, replacement=False):
    by = f" by {assigned_by}" if assigned_by else ""
    suffix = " (replacement)" if replacement else ""
    return notify(
        user_id, "SHIFT_ASSIGNED", "New Shift Assignment",
        f"You have been assigned as {_role_text(role)} for {shift_date}{by}{suffix}",
        related_id=shift_id,
    )


def import_summary(user_id, shifts_count):
    return notify(
        user_id, "SHIFT_ASSIGNED", "Schedule Import Complete",
        f"{shifts_count} new shifts have been assigned to you via schedule import",
    )


def system_message(user_id, title, message, related_id=None):
    return notify(user_id, "general", title, message, related_id=related_id)


# ---------- inbox ----------

def list_for_user(user_id, limit=DEFAULT_LIST_LIMIT, unread_only=False):
    q = Notification.query.filter(Notification.user_id == user_id)
    if unread_only:
        q = q.filter(Notification.read.is_(False))
    return q.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()


def unread_count(user_id) -> int:
    return Notification.query.filter_by(user_id=user_id, read=False).count()


def mark_read(notification_id, user_id=None):
    n = db.session.get(Notification, notification_id)
    if not n:
        raise NotFound(message="Notification not found")
    if user_id is not None and n.user_id != user_id:
        raise Forbidden(message="Not your notification")
    n.read = True
    db.session.commit()
    return n


def mark_all_read(user_id) -> int:
    n = (Notification.query
         .filter(Notification.user_id == user_id, Notification.read.is_(False))
         .update({Notification.read: True}, synchronize_session=False))
    db.session.commit()
    return n


def clear_read(user_id) -> int:
    n = (Notification.query
         .filter(Notification.user_id == user_id, Notification.read.is_(True))
         .delete(synchronize_session=False))
    db.session.commit()
    return n


def clear_all(user_id) -> int:
    n = Notification.query.filter(Notification.user_id == user_id).delete(synchronize_session=False)
    db.session.commit()
    return n
