# oncall_api/realtime/dispatch.py
from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Callable, Dict, Hashable, Iterable, Optional, Tuple

from oncall_api.realtime.events import ChangeEvent, Entity, Op

log = logging.getLogger(__name__)

Handler = Callable[[ChangeEvent], None]


class ProcessedEventLRU:
    """
    Bounded set of recently seen event keys.

    ``seen(key)`` returns True for a key already present (and refreshes it);
    otherwise it records the key and evicts the least recently seen entry
    once ``capacity`` is exceeded.
    """

    def __init__(self, capacity: int = 50):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self._keys: "OrderedDict[Hashable, None]" = OrderedDict()

    def seen(self, key: Hashable) -> bool:
        if key in self._keys:
            self._keys.move_to_end(key)
            return True
        self._keys[key] = None
        if len(self._keys) > self.capacity:
            self._keys.popitem(last=False)
        return False

    def __contains__(self, key: Hashable) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    def clear(self):
        self._keys.clear()


class EventDispatcher:
    """Routes ChangeEvents to handlers registered per (Entity, Op)."""

    def __init__(self, handlers: Optional[Dict[Tuple[Entity, Op], Handler]] = None,
                 dedup: Optional[ProcessedEventLRU] = None):
        self._handlers: Dict[Tuple[Entity, Op], Handler] = {}
        self.dedup = dedup if dedup is not None else ProcessedEventLRU()
        for (entity, op), fn in (handlers or {}).items():
            self.register(entity, op, fn)

    def register(self, entity, op, fn: Handler):
        self._handlers[(Entity(entity), Op(op))] = fn

    def handler_for(self, entity, op) -> Optional[Handler]:
        return self._handlers.get((Entity(entity), Op(op)))

    def dispatch(self, event: ChangeEvent) -> bool:
        """Returns True when a handler ran; duplicates and unrouted events return False."""
        if self.dedup.seen(event.event_key):
            log.debug("duplicate event skipped: %s", event.event_key)
            return False
        fn = self._handlers.get((event.entity, event.op))
        if fn is None:
            log.debug("no handler for %s/%s", event.entity.value, event.op.value)
            return False
        fn(event)
        return True

    def dispatch_many(self, events: Iterable[ChangeEvent]) -> int:
        return sum(1 for ev in events if self.dispatch(ev))
