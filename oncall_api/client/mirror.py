# oncall_api/client/mirror.py
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional, Set

from oncall_api.client.api import OnCallClient, _iso
from oncall_api.realtime.dispatch import EventDispatcher, ProcessedEventLRU
from oncall_api.realtime.events import ChangeEvent, Entity, MalformedEvent, Op

log = logging.getLogger(__name__)

# keys a snapshot must carry before it is trusted
REQUIRED_KEYS = {
    Entity.SHIFT: ("id", "date", "on_call_role", "status"),
    Entity.LEAVE: ("id", "user_id", "start_date", "end_date", "status"),
    Entity.SWAP: ("id", "requester_shift_id", "status"),
    Entity.USER: ("id", "username"),
}


class ScheduleMirror:
    """
    Local copy of shifts, leave requests, swap requests and users kept
    current from the change feed.

    Events are patched in place. When an event carries a payload that does
    not look like its entity, the whole collection is re-fetched instead.
    """

    def __init__(self, client: OnCallClient, start=None, end=None, dedup_capacity: int = 50):
        self.client = client
        # ISO strings; dates and strings are both accepted
        self.start = _iso(start)
        self.end = _iso(end)
        self.cursor = 0
        self.state: Dict[Entity, Dict[int, Dict[str, Any]]] = {e: {} for e in Entity}
        self.refetches = 0

        handlers = {}
        for entity in Entity:
            handlers[(entity, Op.CREATE)] = self._upsert
            handlers[(entity, Op.UPDATE)] = self._upsert
            handlers[(entity, Op.DELETE)] = self._remove
        self.dispatcher = EventDispatcher(handlers, dedup=ProcessedEventLRU(dedup_capacity))

        self._fetchers: Dict[Entity, Callable[[], Any]] = {
            Entity.SHIFT: lambda: self.client.list_shifts(self.start, self.end),
            Entity.LEAVE: self.client.list_leaves,
            Entity.SWAP: self.client.list_swaps,
            Entity.USER: self.client.list_users,
        }

    # ---------- views ----------

    @property
    def shifts(self) -> Dict[int, Dict[str, Any]]:
        return self.state[Entity.SHIFT]

    @property
    def leaves(self) -> Dict[int, Dict[str, Any]]:
        return self.state[Entity.LEAVE]

    @property
    def swaps(self) -> Dict[int, Dict[str, Any]]:
        return self.state[Entity.SWAP]

    @property
    def users(self) -> Dict[int, Dict[str, Any]]:
        return self.state[Entity.USER]

    # ---------- loading ----------

    def refetch(self, entity: Entity):
        rows = self._fetchers[Entity(entity)]() or []
        self.state[Entity(entity)] = {int(r["id"]): r for r in rows if isinstance(r, dict) and "id" in r}
        self.refetches += 1
        log.debug("refetched %s (%s rows)", Entity(entity).value, len(self.state[Entity(entity)]))

    def load(self):
        """Full fetch of every collection; the feed resumes from the head seen before fetching."""
        head = self.client.feed_head()
        for entity in Entity:
            self.refetch(entity)
        self.cursor = head

    # ---------- event handlers ----------

    @staticmethod
    def _valid(event: ChangeEvent) -> bool:
        if event.op == Op.DELETE:
            return True
        p = event.payload
        if any(k not in p for k in REQUIRED_KEYS[event.entity]):
            return False
        return str(p.get("id")) == str(event.entity_id)

    def _in_window(self, event: ChangeEvent) -> bool:
        if event.entity != Entity.SHIFT or not (self.start or self.end):
            return True
        day = str(event.payload.get("date") or "")
        if self.start and day < self.start:
            return False
        if self.end and day > self.end:
            return False
        return True

    def _upsert(self, event: ChangeEvent):
        bucket = self.state[event.entity]
        if not self._in_window(event):
            bucket.pop(event.entity_id, None)
            return
        bucket[event.entity_id] = dict(event.payload)

    def _remove(self, event: ChangeEvent):
        self.state[event.entity].pop(event.entity_id, None)

    # ---------- feed ----------

    def apply(self, event: ChangeEvent, stale: Set[Entity]) -> bool:
        if not self._valid(event):
            stale.add(event.entity)
            return False
        if event.entity in stale:
            return False
        return self.dispatcher.dispatch(event)

    def poll(self, limit: int = 200) -> int:
        """Pull new feed rows, patch local state, return how many events were applied."""
        rows, cursor = self.client.changes(after=self.cursor, limit=limit)
        stale: Set[Entity] = set()
        applied = 0
        for row in rows:
            try:
                event = ChangeEvent.from_dict(row)
            except MalformedEvent as e:
                log.debug("malformed feed row %r: %s", row.get("id") if isinstance(row, dict) else row, e)
                entity = _entity_of(row)
                stale.update([entity] if entity else list(Entity))
                continue
            if self.apply(event, stale):
                applied += 1
        for entity in stale:
            self.refetch(entity)
        self.cursor = cursor
        return applied


def _entity_of(row) -> Optional[Entity]:
    if isinstance(row, dict):
        try:
            return Entity(row.get("entity"))
        except ValueError:
            return None
    return None
