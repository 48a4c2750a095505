from flask import Blueprint, request
from flask_jwt_extended import jwt_required

from oncall_api.common.auth import requires_roles, current_user
from oncall_api.common.dates import parse_date, require_date
from oncall_api.common.errors import ValidationFailed
from oncall_api.common.http import ok, json_body
from oncall_api.models.user import ROLE_MANAGER
from oncall_api.services import shift_service

bp = Blueprint("shifts", __name__, url_prefix="/api/v1/shifts")


def _actor_name():
    u = current_user()
    return u.full_name if u else None


def _int(val, field):
    try:
        return int(val)
    except (TypeError, ValueError):
        raise ValidationFailed(message=f"{field} must be an integer")


@bp.get("")
@jwt_required()
def list_shifts():
    start = parse_date(request.args.get("start"))
    end = parse_date(request.args.get("end"))
    user_id = request.args.get("user_id", type=int)
    rows = shift_service.list_shifts(start, end, user_id=user_id)
    return ok([s.to_dict() for s in rows])


@bp.get("/<int:shift_id>")
@jwt_required()
def get_shift(shift_id):
    return ok(shift_service.get_shift(shift_id).to_dict())


@bp.post("")
@requires_roles(ROLE_MANAGER)
def create_shift():
    d = json_body()
    day = require_date(d.get("date"), "date")
    role = (d.get("on_call_role") or "").upper()
    user_id = _int(d.get("user_id"), "user_id")
    s = shift_service.assign_shift(user_id, day, role, assigned_by=_actor_name())
    return ok(s.to_dict(), status=201)


@bp.put("/<int:shift_id>")
@requires_roles(ROLE_MANAGER)
def reassign_shift(shift_id):
    d = json_body()
    user_id = _int(d.get("user_id"), "user_id")
    s = shift_service.replace_shift(shift_id, user_id, assigned_by=_actor_name())
    return ok(s.to_dict())


@bp.delete("/<int:shift_id>")
@requires_roles(ROLE_MANAGER)
def delete_shift(shift_id):
    return ok(shift_service.unassign_shift(shift_id))


@bp.get("/auto-complete")
@jwt_required()
def auto_complete_status():
    return ok({"pending_completion": shift_service.pending_completion_count()})


@bp.post("/auto-complete")
@requires_roles(ROLE_MANAGER)
def auto_complete():
    return ok(shift_service.auto_complete_shifts())


@bp.post("/repeat")
@requires_roles(ROLE_MANAGER)
def repeat():
    d = json_body()
    target_end = d.get("target_end_date")
    result = shift_service.repeat_shifts(
        require_date(d.get("source_start_date"), "source_start_date"),
        require_date(d.get("source_end_date"), "source_end_date"),
        require_date(d.get("target_start_date"), "target_start_date"),
        target_end=require_date(target_end, "target_end_date") if target_end else None,
        repeat_duration=d.get("repeat_duration"),
        repeat_unit=d.get("repeat_unit"),
    )
    return ok(result, status=201)
