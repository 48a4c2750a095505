from flask import Blueprint, request
from flask_jwt_extended import jwt_required

from oncall_api.common.auth import current_user_id
from oncall_api.common.errors import ValidationFailed
from oncall_api.common.http import ok
from oncall_api.services import notification_service

bp = Blueprint("notifications", __name__, url_prefix="/api/v1/notifications")


@bp.get("")
@jwt_required()
def inbox():
    uid = current_user_id()
    limit = max(1, min(request.args.get("limit", default=50, type=int) or 50, 200))
    unread_only = request.args.get("unread") in ("1", "true", "yes")
    items = notification_service.list_for_user(uid, limit=limit, unread_only=unread_only)
    return ok([n.to_dict() for n in items], unread=notification_service.unread_count(uid))


@bp.post("/<int:nid>/read")
@jwt_required()
def read_one(nid):
    return ok(notification_service.mark_read(nid, user_id=current_user_id()).to_dict())


@bp.post("/read-all")
@jwt_required()
def read_all():
    return ok({"updated": notification_service.mark_all_read(current_user_id())})


@bp.delete("")
@jwt_required()
def clear():
    scope = (request.args.get("scope") or "read").lower()
    uid = current_user_id()
    if scope == "read":
        n = notification_service.clear_read(uid)
    elif scope == "all":
        n = notification_service.clear_all(uid)
    else:
        raise ValidationFailed(message="scope must be read or all")
    return ok({"deleted": n, "scope": scope})
