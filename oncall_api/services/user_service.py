# oncall_api/services/user_service.py
import logging
import re

from sqlalchemy import or_

from oncall_api.common.errors import Conflict, NotFound, ValidationFailed
from oncall_api.extensions import db
from oncall_api.models.leave import LeaveRequest, LeaveApprovalAction
from oncall_api.models.notification import Notification
from oncall_api.models.swap import SwapRequest
from oncall_api.models.user import User, ROLES, BALANCE_FIELDS
from oncall_api.realtime.events import Entity, Op
from oncall_api.realtime.feed import record_change
from oncall_api.services.shift_service import orphan_user_shifts

log = logging.getLogger(__name__)

USERNAME_RE = re.compile(r"^[a-zA-Z0-9_]+$")
REQUIRED_FIELDS = ("first_name", "last_name", "email", "password", "role")
DEFAULT_BALANCES = {"paid_leaves": 20, "sick_leaves": 12, "comp_offs": 0}
PROFILE_FIELDS = ("first_name", "last_name", "email", "username")


def get_user(user_id) -> User:
    u = db.session.get(User, user_id)
    if not u:
        raise NotFound(message="User not found")
    return u


def find_by_login(login):
    login = (login or "").strip()
    if not login:
        return None
    return User.query.filter(or_(User.email == login.lower(), User.username == login)).first()


def list_users(role=None, q=None):
    qry = User.query
    if role:
        qry = qry.filter(User.role == role)
    if q:
        like = f"%{q}%"
        qry = qry.filter(or_(User.username.ilike(like), User.email.ilike(like),
                             User.first_name.ilike(like), User.last_name.ilike(like)))
    return qry.order_by(User.first_name.asc(), User.last_name.asc())


def team_of(manager_id):
    get_user(manager_id)
    return User.query.filter_by(manager_id=manager_id).order_by(User.first_name.asc()).all()


def _balance(name, value):
    if isinstance(value, int) and not isinstance(value, bool):
        n = value
    elif isinstance(value, str) and value.strip().isdigit():
        n = int(value.strip())
    else:
        raise ValidationFailed(message=f"{name} must be a non-negative integer")
    if n < 0:
        raise ValidationFailed(message=f"{name} must be a non-negative integer")
    return n


def _check_username(username):
    if not USERNAME_RE.match(username or ""):
        raise ValidationFailed(message="Username must contain only letters, numbers, and underscores")


def _check_role(role):
    if role not in ROLES:
        raise ValidationFailed(message=f"role must be one of {', '.join(ROLES)}")


def _check_manager(manager_id, user_id=None):
    if manager_id in (None, ""):
        return None
    try:
        manager_id = int(manager_id)
    except (TypeError, ValueError):
        raise ValidationFailed(message="manager_id must be an integer")
    if user_id is not None and manager_id == user_id:
        raise ValidationFailed(message="A user cannot manage themselves")
    get_user(manager_id)
    return manager_id


def _check_unique(username=None, email=None, exclude_id=None):
    if username:
        q = User.query.filter(User.username == username)
        if exclude_id:
            q = q.filter(User.id != exclude_id)
        if q.first():
            raise Conflict(message="Username already taken")
    if email:
        q = User.query.filter(User.email == email)
        if exclude_id:
            q = q.filter(User.id != exclude_id)
        if q.first():
            raise Conflict(message="User with this email already exists")


def create_user(data: dict) -> User:
    for f in REQUIRED_FIELDS:
        if not data.get(f):
            raise ValidationFailed(message=f"Missing required field: {f}")

    email = str(data["email"]).strip().lower()
    username = (data.get("username") or email.split("@")[0]).strip()
    _check_username(username)
    _check_role(data["role"])
    _check_unique(username=username, email=email)

    u = User(
        username=username,
        email=email,
        first_name=str(data["first_name"]).strip(),
        last_name=str(data["last_name"]).strip(),
        role=data["role"],
        manager_id=_check_manager(data.get("manager_id")),
    )
    for field, default in DEFAULT_BALANCES.items():
        raw = data.get(field)
        setattr(u, field, default if raw is None else _balance(field, raw))
    u.set_password(str(data["password"]))
    db.session.add(u)
    db.session.flush()
    record_change(Entity.USER, Op.CREATE, u)
    db.session.commit()
    log.info("user %s created (%s)", u.username, u.role)
    return u


def update_user(user_id, updates: dict) -> User:
    u = get_user(user_id)

    if "username" in updates:
        _check_username(updates["username"])
    if "email" in updates and updates["email"]:
        updates = dict(updates, email=str(updates["email"]).strip().lower())
    _check_unique(username=updates.get("username"), email=updates.get("email"), exclude_id=u.id)

    for f in PROFILE_FIELDS:
        if f in updates and updates[f] not in (None, ""):
            setattr(u, f, str(updates[f]).strip())
    if "role" in updates:
        _check_role(updates["role"])
        u.role = updates["role"]
    if "manager_id" in updates:
        u.manager_id = _check_manager(updates["manager_id"], user_id=u.id)
    for field in BALANCE_FIELDS.values():
        if field in updates:
            setattr(u, field, _balance(field, updates[field]))
    if updates.get("password"):
        u.set_password(str(updates["password"]))

    db.session.flush()
    record_change(Entity.USER, Op.UPDATE, u)
    db.session.commit()
    return u


def delete_user(user_id) -> dict:
    """
    Offboard a user: their shifts stay on the calendar unowned, their leave
    and swap requests and inbox go, reports lose their manager link.
    """
    u = get_user(user_id)
    snap = u.to_dict()

    shifts = orphan_user_shifts(u.id)

    leaves = LeaveRequest.query.filter(LeaveRequest.user_id == u.id).all()
    leave_ids = [lr.id for lr in leaves]
    if leave_ids:
        LeaveApprovalAction.query.filter(LeaveApprovalAction.leave_request_id.in_(leave_ids)) \
            .delete(synchronize_session=False)
    for lr in leaves:
        record_change(Entity.LEAVE, Op.DELETE, None, entity_id=lr.id, snapshot=lr.to_dict())
        db.session.delete(lr)

    swaps = SwapRequest.query.filter(or_(SwapRequest.requester_user_id == u.id,
                                         SwapRequest.target_user_id == u.id)).all()
    for sr in swaps:
        record_change(Entity.SWAP, Op.DELETE, None, entity_id=sr.id, snapshot=sr.to_dict())
        db.session.delete(sr)

    notes = Notification.query.filter(Notification.user_id == u.id).delete(synchronize_session=False)

    User.query.filter(User.manager_id == u.id).update({User.manager_id: None}, synchronize_session=False)
    LeaveRequest.query.filter(LeaveRequest.approved_by_user_id == u.id) \
        .update({LeaveRequest.approved_by_user_id: None}, synchronize_session=False)
    LeaveApprovalAction.query.filter(LeaveApprovalAction.acted_by_user_id == u.id) \
        .update({LeaveApprovalAction.acted_by_user_id: None}, synchronize_session=False)
    SwapRequest.query.filter(SwapRequest.responded_by_user_id == u.id) \
        .update({SwapRequest.responded_by_user_id: None}, synchronize_session=False)

    db.session.delete(u)
    record_change(Entity.USER, Op.DELETE, None, entity_id=snap["id"], snapshot=snap)
    db.session.commit()

    counts = {"shifts_orphaned": shifts, "leave_requests_deleted": len(leaves),
              "swap_requests_deleted": len(swaps), "notifications_deleted": notes}
    log.info("user %s deleted: %s", snap["username"], counts)
    return counts
