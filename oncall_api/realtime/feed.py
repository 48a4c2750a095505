# oncall_api/realtime/feed.py
import logging
from datetime import datetime, timedelta

from oncall_api.extensions import db
from oncall_api.models.change_event import ChangeEvent as ChangeEventRow
from oncall_api.realtime.events import Entity, Op

log = logging.getLogger(__name__)

DEFAULT_LIMIT = 200
MAX_LIMIT = 1000


def _snapshot(obj):
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return dict(obj)
    return obj.to_dict()


def record_change(entity, op, obj, entity_id=None, snapshot=None):
    """
    Append a change row to the current session.

    Call after ``db.session.flush()`` so ``obj.id`` is populated; the row
    commits (or rolls back) together with the mutation it describes.
    For deletes pass the snapshot taken before ``db.session.delete``.
    """
    entity = Entity(entity)
    op = Op(op)
    payload = snapshot if snapshot is not None else _snapshot(obj)
    eid = entity_id if entity_id is not None else payload.get("id")
    if eid is None:
        raise ValueError(f"cannot record {entity.value}/{op.value} without an entity id")
    row = ChangeEventRow(entity=entity.value, op=op.value, entity_id=int(eid), payload=payload)
    db.session.add(row)
    log.debug("change %s %s id=%s", entity.value, op.value, eid)
    return row


def changes_after(cursor=0, limit=DEFAULT_LIMIT, entity=None):
    """Rows with id > cursor in id order."""
    try:
        cursor = max(int(cursor or 0), 0)
    except (TypeError, ValueError):
        cursor = 0
    try:
        limit = max(1, min(int(limit or DEFAULT_LIMIT), MAX_LIMIT))
    except (TypeError, ValueError):
        limit = DEFAULT_LIMIT

    q = ChangeEventRow.query.filter(ChangeEventRow.id > cursor)
    if entity:
        q = q.filter(ChangeEventRow.entity == Entity(entity).value)
    return q.order_by(ChangeEventRow.id.asc()).limit(limit).all()


def latest_cursor() -> int:
    return db.session.query(db.func.max(ChangeEventRow.id)).scalar() or 0


def prune_changes(keep_days=30, now=None) -> int:
    """Delete feed rows older than ``keep_days``; returns the number removed."""
    now = now or datetime.utcnow()
    cutoff = now - timedelta(days=int(keep_days))
    n = (ChangeEventRow.query
         .filter(ChangeEventRow.created_at < cutoff)
         .delete(synchronize_session=False))
    db.session.commit()
    log.info("pruned %s change events older than %s", n, cutoff.isoformat())
    return n
