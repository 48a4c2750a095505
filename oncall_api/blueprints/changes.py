from flask import Blueprint, request
from flask_jwt_extended import jwt_required

from oncall_api.common.errors import ValidationFailed
from oncall_api.common.http import ok
from oncall_api.realtime.events import Entity
from oncall_api.realtime.feed import changes_after, latest_cursor, DEFAULT_LIMIT

bp = Blueprint("changes", __name__, url_prefix="/api/v1/changes")


@bp.get("")
@jwt_required()
def poll():
    """
    GET /api/v1/changes?after=<cursor>&limit=<n>&entity=SHIFT|LEAVE|SWAP|USER

    Returns rows with id > after, oldest first. ``meta.cursor`` is the id to
    send as ``after`` next time (unchanged when there is nothing new).
    """
    after = request.args.get("after", default=0, type=int) or 0
    limit = request.args.get("limit", default=DEFAULT_LIMIT, type=int)
    entity = (request.args.get("entity") or "").upper() or None
    if entity and entity not in {e.value for e in Entity}:
        raise ValidationFailed(message="entity must be one of SHIFT, LEAVE, SWAP, USER")
    rows = changes_after(after, limit, entity=entity)
    cursor = rows[-1].id if rows else after
    return ok([r.to_dict() for r in rows], cursor=cursor, latest=latest_cursor())
