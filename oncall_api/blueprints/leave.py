from flask import Blueprint, request
from flask_jwt_extended import jwt_required

from oncall_api.common.auth import requires_roles, current_user_id, current_user, has_role
from oncall_api.common.dates import require_date
from oncall_api.common.errors import Forbidden, NotFound
from oncall_api.common.http import ok, json_body
from oncall_api.models.user import User, ROLE_MANAGER
from oncall_api.extensions import db
from oncall_api.services import leave_service

bp = Blueprint("leave", __name__, url_prefix="/api/v1/leave")


# ---------- Requests ----------
@bp.get("/requests")
@jwt_required()
def list_requests():
    status = request.args.get("status")
    user_id = request.args.get("user_id", type=int)
    uid = current_user_id()
    if not has_role(ROLE_MANAGER):
        # employees only see their own
        if user_id and user_id != uid:
            raise Forbidden(message="You can only view your own leave requests")
        user_id = uid
    items = leave_service.list_leaves(user_id=user_id, status=status)
    return ok([lr.to_dict() for lr in items])


@bp.post("/requests")
@jwt_required()
def apply_leave():
    d = json_body()
    lr = leave_service.apply_leave(
        current_user_id(),
        (d.get("type") or "").upper(),
        require_date(d.get("start_date"), "start_date"),
        require_date(d.get("end_date"), "end_date"),
        d.get("reason"),
    )
    return ok(lr.to_dict(), status=201)


@bp.post("/requests/<int:rid>/approve")
@requires_roles(ROLE_MANAGER)
def approve_request(rid):
    d = json_body()
    lr = leave_service.approve_leave(rid, current_user_id(), d.get("comment"))
    return ok(lr.to_dict())


@bp.post("/requests/<int:rid>/reject")
@requires_roles(ROLE_MANAGER)
def reject_request(rid):
    d = json_body()
    lr = leave_service.reject_leave(rid, current_user_id(), d.get("comment"))
    return ok(lr.to_dict())


@bp.post("/requests/<int:rid>/cancel")
@jwt_required()
def cancel_request(rid):
    lr = leave_service.cancel_leave(rid, current_user_id())
    return ok(lr.to_dict())


@bp.post("/requests/<int:rid>/comment")
@requires_roles(ROLE_MANAGER)
def comment_request(rid):
    d = json_body()
    lr = leave_service.comment_leave(rid, current_user_id(), d.get("comment"))
    return ok(lr.to_dict())


# ---------- Balances ----------
@bp.get("/balances")
@jwt_required()
def get_balances():
    user_id = request.args.get("user_id", type=int)
    if user_id and user_id != current_user_id():
        if not has_role(ROLE_MANAGER):
            raise Forbidden(message="You can only view your own balances")
        u = db.session.get(User, user_id)
    else:
        u = current_user()
    if not u:
        raise NotFound(message="User not found")
    return ok({"user_id": u.id, **leave_service.balances_for(u)})


# ---------- Who is out ----------
@bp.get("/on-leave")
@jwt_required()
def on_leave():
    start = require_date(request.args.get("start"), "start")
    end = require_date(request.args.get("end"), "end")
    return ok(leave_service.employees_on_leave(start, end))
