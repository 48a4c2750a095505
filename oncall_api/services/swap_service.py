# oncall_api/services/swap_service.py
import logging
from datetime import datetime

from sqlalchemy import or_

from oncall_api.common.errors import Conflict, Forbidden, NotFound, ValidationFailed
from oncall_api.extensions import db
from oncall_api.models.shift import Shift, STATUS_SWAPPED
from oncall_api.models.swap import SwapRequest, SWAP_PENDING, SWAP_APPROVED, SWAP_REJECTED
from oncall_api.models.user import User, ROLE_ADMIN
from oncall_api.realtime.events import Entity, Op
from oncall_api.realtime.feed import record_change
from oncall_api.services import notification_service as notifications
from oncall_api.services.assignment_guard import ensure_assignable
from oncall_api.services.shift_service import flush_owner

log = logging.getLogger(__name__)


def get_swap(swap_id) -> SwapRequest:
    sr = db.session.get(SwapRequest, swap_id)
    if not sr:
        raise NotFound(message="Swap request not found")
    return sr


def _user(user_id) -> User:
    u = db.session.get(User, user_id) if user_id else None
    if not u:
        raise NotFound(message="User not found")
    return u


def _authorize_response(sr, actor: User):
    """Target user resolves a directed request; any teammate but the requester resolves an open offer."""
    if actor.role == ROLE_ADMIN:
        return
    if sr.target_user_id is not None:
        if actor.id != sr.target_user_id:
            raise Forbidden(message="Only the target user can respond to this swap request")
    elif actor.id == sr.requester_user_id:
        raise Forbidden(message="You cannot respond to your own swap offer")


def list_swaps(user_id=None, status=None, include_open=False):
    q = SwapRequest.query
    if user_id:
        cond = [SwapRequest.requester_user_id == user_id, SwapRequest.target_user_id == user_id]
        if include_open:
            cond.append(SwapRequest.target_user_id.is_(None))
        q = q.filter(or_(*cond))
    if status:
        q = q.filter(SwapRequest.status == status)
    return q.order_by(SwapRequest.requested_at.desc(), SwapRequest.id.desc()).all()


def propose_swap(requester_id, requester_shift_id, target_shift_id=None, reason="") -> SwapRequest:
    requester = _user(requester_id)
    rs = db.session.get(Shift, requester_shift_id)
    if not rs:
        raise NotFound(message="Shift not found")
    if rs.user_id != requester_id:
        raise Forbidden(message="You can only offer your own shifts")

    ts = None
    if target_shift_id is not None:
        ts = db.session.get(Shift, target_shift_id)
        if not ts:
            raise NotFound(message="Target shift not found")
        if ts.id == rs.id:
            raise ValidationFailed(message="Cannot swap a shift with itself")
        if ts.user_id is None or ts.user_id == requester_id:
            raise ValidationFailed(message="Target shift must belong to another user")

    dup = SwapRequest.query.filter_by(requester_shift_id=rs.id, status=SWAP_PENDING).first()
    if dup:
        raise Conflict(message="A pending swap request already exists for this shift",
                       payload={"swap_id": dup.id})

    sr = SwapRequest(
        requester_shift_id=rs.id,
        requester_user_id=requester_id,
        target_shift_id=ts.id if ts else None,
        target_user_id=ts.user_id if ts else None,
        reason=reason or "",
        status=SWAP_PENDING,
    )
    db.session.add(sr)
    db.session.flush()
    record_change(Entity.SWAP, Op.CREATE, sr)
    if ts is not None:
        notifications.swap_requested(ts.user_id, requester.full_name, rs.date.isoformat(),
                                     ts.date.isoformat(), sr.id)
    db.session.commit()
    log.info("swap %s proposed by %s: shift %s <-> %s", sr.id, requester_id, rs.id, sr.target_shift_id)
    return sr


def accept_swap(swap_id, actor_id, target_shift_id=None, notes=None) -> SwapRequest:
    """
    Execute a swap as one unit of work.

    Both shifts are re-read and must still belong to the expected users;
    each party is re-checked for double-booking and leave on the date they
    take over, ignoring the two shifts being exchanged. On any failure the
    session is rolled back and the request stays PENDING.

    An open offer accepted without ``target_shift_id`` is a handover: the
    accepter takes the requester's shift and gives nothing back.
    """
    sr = get_swap(swap_id)
    actor = _user(actor_id)
    _authorize_response(sr, actor)
    if sr.status == SWAP_APPROVED:
        return sr
    if sr.status != SWAP_PENDING:
        raise Conflict(code="INVALID_STATE", message=f"Cannot accept swap request in '{sr.status}' status")

    try:
        rs = db.session.get(Shift, sr.requester_shift_id)
        if rs is None or rs.user_id != sr.requester_user_id:
            raise Conflict(code="STALE_SWAP", message="Requester no longer holds the offered shift")

        if sr.is_open_offer:
            if target_shift_id is not None:
                ts = db.session.get(Shift, target_shift_id)
                if ts is None:
                    raise NotFound(message="Target shift not found")
                if actor.role != ROLE_ADMIN and ts.user_id != actor.id:
                    raise Forbidden(message="You can only trade your own shift")
                if ts.user_id is None or ts.user_id == sr.requester_user_id or ts.id == rs.id:
                    raise ValidationFailed(message="Target shift must belong to another user")
                sr.target_shift_id = ts.id
                sr.target_user_id = ts.user_id
            else:
                ts = None
                sr.target_user_id = actor.id
        else:
            if sr.target_shift_id is None:
                raise Conflict(code="STALE_SWAP", message="The requested target shift no longer exists")
            if target_shift_id is not None and target_shift_id != sr.target_shift_id:
                raise ValidationFailed(message="target_shift_id does not match this swap request")
            ts = db.session.get(Shift, sr.target_shift_id) if sr.target_shift_id else None
            if ts is None or ts.user_id != sr.target_user_id:
                raise Conflict(code="STALE_SWAP", message="Target user no longer holds the requested shift")

        requester_id, target_id = sr.requester_user_id, sr.target_user_id
        ignore = [rs.id] + ([ts.id] if ts is not None else [])
        ensure_assignable(target_id, rs.date, rs.on_call_role, replace=True, ignore_shift_ids=ignore)
        if ts is not None:
            ensure_assignable(requester_id, ts.date, ts.on_call_role, replace=True, ignore_shift_ids=ignore)

        rs.user_id = target_id
        rs.status = STATUS_SWAPPED
        changed = [rs]
        if ts is not None:
            ts.user_id = requester_id
            ts.status = STATUS_SWAPPED
            changed.append(ts)
        flush_owner(*changed)

        sr.status = SWAP_APPROVED
        sr.responded_at = datetime.utcnow()
        sr.responded_by_user_id = actor.id
        sr.response_notes = notes
        db.session.flush()

        for s in changed:
            record_change(Entity.SHIFT, Op.UPDATE, s)
        record_change(Entity.SWAP, Op.UPDATE, sr)
        shift_date = (ts or rs).date.isoformat()
        notifications.swap_responded(requester_id, SWAP_APPROVED, shift_date, sr.id, actor.full_name)
        db.session.commit()
    except Exception:
        db.session.rollback()
        log.warning("swap %s not executed; rolled back", swap_id)
        raise

    log.info("swap %s executed by %s", sr.id, actor.id)
    return sr


def reject_swap(swap_id, actor_id, notes=None) -> SwapRequest:
    sr = get_swap(swap_id)
    if sr.status != SWAP_PENDING:
        raise Conflict(code="INVALID_STATE", message=f"Cannot reject swap request in '{sr.status}' status")
    actor = _user(actor_id)
    _authorize_response(sr, actor)

    sr.status = SWAP_REJECTED
    sr.responded_at = datetime.utcnow()
    sr.responded_by_user_id = actor.id
    sr.response_notes = notes
    db.session.flush()
    record_change(Entity.SWAP, Op.UPDATE, sr)
    rs = db.session.get(Shift, sr.requester_shift_id)
    notifications.swap_responded(sr.requester_user_id, SWAP_REJECTED,
                                 rs.date.isoformat() if rs else "", sr.id, actor.full_name)
    db.session.commit()
    return sr
