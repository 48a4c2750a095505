from flask import Blueprint, request
from flask_jwt_extended import jwt_required

from oncall_api.common.auth import current_user_id, has_role
from oncall_api.common.errors import ValidationFailed
from oncall_api.common.http import ok, json_body
from oncall_api.models.user import ROLE_MANAGER
from oncall_api.services import swap_service

bp = Blueprint("swaps", __name__, url_prefix="/api/v1/swaps")


def _opt_int(val, field):
    if val in (None, ""):
        return None
    try:
        return int(val)
    except (TypeError, ValueError):
        raise ValidationFailed(message=f"{field} must be an integer")


@bp.get("")
@jwt_required()
def list_swaps():
    status = request.args.get("status")
    if has_role(ROLE_MANAGER):
        user_id = request.args.get("user_id", type=int)
        items = swap_service.list_swaps(user_id=user_id, status=status)
    else:
        items = swap_service.list_swaps(user_id=current_user_id(), status=status, include_open=True)
    return ok([sr.to_dict() for sr in items])


@bp.post("")
@jwt_required()
def propose():
    d = json_body()
    requester_shift_id = _opt_int(d.get("requester_shift_id"), "requester_shift_id")
    if requester_shift_id is None:
        raise ValidationFailed(message="requester_shift_id is required")
    sr = swap_service.propose_swap(
        current_user_id(),
        requester_shift_id,
        target_shift_id=_opt_int(d.get("target_shift_id"), "target_shift_id"),
        reason=d.get("reason") or "",
    )
    return ok(sr.to_dict(), status=201)


@bp.post("/<int:swap_id>/accept")
@jwt_required()
def accept(swap_id):
    d = json_body()
    sr = swap_service.accept_swap(
        swap_id, current_user_id(),
        target_shift_id=_opt_int(d.get("target_shift_id"), "target_shift_id"),
        notes=d.get("notes"),
    )
    return ok(sr.to_dict())


@bp.post("/<int:swap_id>/reject")
@jwt_required()
def reject(swap_id):
    d = json_body()
    sr = swap_service.reject_swap(swap_id, current_user_id(), notes=d.get("notes"))
    return ok(sr.to_dict())
