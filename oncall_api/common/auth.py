# oncall_api/common/auth.py
from __future__ import annotations

from functools import wraps
from typing import Set

from flask_jwt_extended import jwt_required, get_jwt, get_jwt_identity

from oncall_api.common.http import fail
from oncall_api.extensions import db
from oncall_api.models.user import User, ROLE_ADMIN


# ---------- helpers ----------

def current_user_id() -> int | None:
    uid = get_jwt_identity()
    if uid is None:
        return None
    try:
        return int(uid)
    except (TypeError, ValueError):
        return None


def current_user() -> User | None:
    uid = current_user_id()
    return db.session.get(User, uid) if uid else None


def current_roles() -> Set[str]:
    """
    Roles of the caller. JWT 'roles' claim first; falls back to the
    user row so a stale token without claims still resolves.
    """
    claims = get_jwt() or {}
    roles = set(claims.get("roles") or [])
    if roles:
        return roles
    user = current_user()
    return {user.role} if user else set()


def has_role(*codes: str) -> bool:
    roles = current_roles()
    return ROLE_ADMIN in roles or any(c in roles for c in codes)


def is_admin() -> bool:
    return ROLE_ADMIN in current_roles()


# ---------- decorators ----------

def requires_roles(*codes: str):
    """
    Require that the current user has AT LEAST ONE of the given role codes.
    - Uses roles in JWT if present; falls back to DB.
    - 'ADMIN' always passes.
    """
    def outer(fn):
        @wraps(fn)
        @jwt_required()
        def inner(*args, **kwargs):
            claims = get_jwt() or {}
            jwt_roles = set(claims.get("roles") or [])
            if ROLE_ADMIN in jwt_roles:
                return fn(*args, **kwargs)

            uid = current_user_id()
            if uid is None:
                return fail("Unauthorized", status=401)

            roles: Set[str]
            if jwt_roles:
                roles = jwt_roles
            else:
                # fallback DB
                user = db.session.get(User, uid)
                if not user:
                    return fail("Unauthorized", status=401)
                roles = {user.role}

            if ROLE_ADMIN in roles:
                return fn(*args, **kwargs)

            if not any(r in roles for r in codes):
                return fail("Forbidden", status=403)

            return fn(*args, **kwargs)
        return inner
    return outer
