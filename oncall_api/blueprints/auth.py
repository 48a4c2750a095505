from flask import Blueprint, current_app
from flask_jwt_extended import (
    create_access_token, create_refresh_token,
    jwt_required, get_jwt_identity,
)

from oncall_api.common.auth import current_user
from oncall_api.common.errors import ValidationFailed
from oncall_api.common.http import ok, fail, json_body
from oncall_api.extensions import db
from oncall_api.models.user import User
from oncall_api.services.user_service import find_by_login

bp = Blueprint("auth", __name__, url_prefix="/api/v1/auth")


def issue_tokens(u: User) -> dict:
    claims = {"roles": u.role_codes(), "email": u.email, "name": u.full_name}
    return {
        "access": create_access_token(identity=str(u.id), additional_claims=claims),
        "refresh": create_refresh_token(identity=str(u.id), additional_claims={"roles": u.role_codes()}),
    }


@bp.post("/login")
def login():
    data = json_body()
    login_id = data.get("email") or data.get("username") or ""
    password = data.get("password") or ""
    u = find_by_login(login_id)
    if not u or not u.check_password(password):
        current_app.logger.info("failed login for %r", login_id)
        return fail("Invalid credentials", status=401, code="INVALID_CREDENTIALS")
    return ok({**issue_tokens(u), "user": u.to_dict()})


@bp.post("/refresh")
@jwt_required(refresh=True)
def refresh():
    uid = get_jwt_identity()
    u = db.session.get(User, int(uid)) if uid else None
    if not u:
        return fail("Unauthorized", status=401)
    claims = {"roles": u.role_codes(), "email": u.email, "name": u.full_name}
    return ok({"access": create_access_token(identity=str(u.id), additional_claims=claims)})


@bp.get("/me")
@jwt_required()
def me():
    u = current_user()
    if not u:
        return fail("User not found", status=404)
    return ok(u.to_dict())


@bp.post("/password")
@jwt_required()
def change_password():
    data = json_body()
    u = current_user()
    if not u:
        return fail("User not found", status=404)
    old, new = data.get("old_password") or "", data.get("new_password") or ""
    if not u.check_password(old):
        return fail("Current password is incorrect", status=400, code="BAD_PASSWORD")
    if len(new) < 6:
        raise ValidationFailed(message="New password must be at least 6 characters")
    u.set_password(new)
    db.session.commit()
    return ok({"changed": True})
