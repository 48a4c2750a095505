from flask import Blueprint, request
from flask_jwt_extended import jwt_required

from oncall_api.common.auth import requires_roles, current_user_id, has_role, is_admin
from oncall_api.common.errors import Forbidden
from oncall_api.common.http import ok, json_body
from oncall_api.common.paging import paginate, text_q
from oncall_api.models.user import ROLE_ADMIN, ROLE_MANAGER, BALANCE_FIELDS
from oncall_api.services import user_service

bp = Blueprint("users", __name__, url_prefix="/api/v1/users")

# fields only managers/admins may change
_PRIVILEGED = ("role", "manager_id", *BALANCE_FIELDS.values())


@bp.get("")
@jwt_required()
def list_users():
    q = user_service.list_users(role=request.args.get("role"), q=text_q())
    items, meta = paginate(q)
    return ok([u.to_dict() for u in items], **meta)


@bp.get("/<int:user_id>")
@jwt_required()
def get_user(user_id):
    return ok(user_service.get_user(user_id).to_dict())


@bp.get("/<int:user_id>/team")
@jwt_required()
def team(user_id):
    return ok([u.to_dict() for u in user_service.team_of(user_id)])


@bp.post("")
@requires_roles(ROLE_MANAGER)
def create_user():
    data = json_body()
    if data.get("role") == ROLE_ADMIN and not is_admin():
        raise Forbidden(message="Only admins can create admin users")
    u = user_service.create_user(data)
    return ok(u.to_dict(), status=201)


@bp.put("/<int:user_id>")
@jwt_required()
def update_user(user_id):
    data = json_body()
    privileged = has_role(ROLE_MANAGER)
    if not privileged:
        if user_id != current_user_id():
            raise Forbidden(message="You can only edit your own profile")
        blocked = [k for k in _PRIVILEGED if k in data]
        if blocked:
            raise Forbidden(message=f"Not allowed to change: {', '.join(blocked)}")
    if data.get("role") == ROLE_ADMIN and not is_admin():
        raise Forbidden(message="Only admins can grant the admin role")
    u = user_service.update_user(user_id, data)
    return ok(u.to_dict())


@bp.delete("/<int:user_id>")
@requires_roles(ROLE_MANAGER)
def delete_user(user_id):
    if user_id == current_user_id():
        raise Forbidden(message="You cannot delete yourself")
    return ok(user_service.delete_user(user_id))
