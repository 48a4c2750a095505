from oncall_api.realtime.events import Entity, Op, ChangeEvent, MalformedEvent
from oncall_api.realtime.dispatch import ProcessedEventLRU, EventDispatcher

__all__ = [
    "Entity",
    "Op",
    "ChangeEvent",
    "MalformedEvent",
    "ProcessedEventLRU",
    "EventDispatcher",
]
