# oncall_api/realtime/events.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class Entity(str, Enum):
    SHIFT = "SHIFT"
    LEAVE = "LEAVE"
    SWAP = "SWAP"
    USER = "USER"


class Op(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class MalformedEvent(ValueError):
    """A feed row that cannot be turned into a ChangeEvent."""


@dataclass(frozen=True)
class ChangeEvent:
    """
    One entry of the change feed.

    ``payload`` is the entity snapshot after the op (for DELETE: the last
    snapshot before removal). ``cursor`` is the feed position; clients pass
    the highest cursor they have seen back as ``?after=``.
    """
    entity: Entity
    op: Op
    entity_id: int
    payload: Dict[str, Any] = field(default_factory=dict)
    cursor: Optional[int] = None
    created_at: Optional[str] = None

    @property
    def updated_at(self) -> Optional[str]:
        return self.payload.get("updated_at") or self.created_at

    @property
    def event_key(self) -> Tuple[str, int, str, Optional[str]]:
        """Identity used for de-duplication: same entity, id, op and version."""
        return (self.entity.value, self.entity_id, self.op.value, self.updated_at)

    @classmethod
    def from_dict(cls, row: Dict[str, Any]) -> "ChangeEvent":
        if not isinstance(row, dict):
            raise MalformedEvent(f"event must be an object, got {type(row).__name__}")
        try:
            entity = Entity(row["entity"])
            op = Op(row["op"])
            entity_id = int(row["entity_id"])
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedEvent(f"bad event header: {e}") from e
        payload = row.get("payload")
        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            raise MalformedEvent("payload must be an object")
        return cls(
            entity=entity,
            op=op,
            entity_id=entity_id,
            payload=payload,
            cursor=row.get("id"),
            created_at=row.get("created_at"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.cursor,
            "entity": self.entity.value,
            "op": self.op.value,
            "entity_id": self.entity_id,
            "payload": self.payload,
            "created_at": self.created_at,
        }
