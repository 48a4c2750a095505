from datetime import date, timedelta

from flask import Blueprint
from flask_jwt_extended import jwt_required

from oncall_api.common.auth import current_user
from oncall_api.common.http import ok, fail
from oncall_api.models.leave import LeaveRequest, LEAVE_PENDING
from oncall_api.models.shift import Shift, STATUS_SCHEDULED
from oncall_api.models.swap import SwapRequest, SWAP_PENDING
from oncall_api.models.user import User, ROLE_MANAGER, ROLE_EMPLOYEE

bp = Blueprint("dashboard", __name__, url_prefix="/api/v1/dashboard")


@bp.get("/stats")
@jwt_required()
def stats():
    """
    Headline numbers. Managers see their own team; admins and employees
    see the whole roster.
    """
    u = current_user()
    if not u:
        return fail("Unauthorized", status=401)

    today = date.today()
    horizon = today + timedelta(days=7)

    team_ids = None
    if u.role == ROLE_MANAGER:
        team_ids = [r.id for r in User.query.filter_by(manager_id=u.id).all()]

    employees = User.query.filter(User.role == ROLE_EMPLOYEE)
    leaves = LeaveRequest.query.filter(LeaveRequest.status == LEAVE_PENDING)
    swaps = SwapRequest.query.filter(SwapRequest.status == SWAP_PENDING)
    upcoming = Shift.query.filter(Shift.date >= today, Shift.date < horizon,
                                  Shift.status == STATUS_SCHEDULED)
    if team_ids is not None:
        employees = User.query.filter(User.id.in_(team_ids))
        leaves = leaves.filter(LeaveRequest.user_id.in_(team_ids))
        swaps = swaps.filter(SwapRequest.requester_user_id.in_(team_ids))
        upcoming = upcoming.filter(Shift.user_id.in_(team_ids))

    return ok({
        "total_employees": employees.count(),
        "pending_leave_requests": leaves.count(),
        "pending_swap_requests": swaps.count(),
        "upcoming_shifts": upcoming.count(),
        "scope": "team" if team_ids is not None else "all",
    })
