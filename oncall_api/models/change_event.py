from datetime import datetime
from oncall_api.extensions import db


class ChangeEvent(db.Model):
    """One row per create/update/delete of a tracked entity; ``id`` is the feed cursor."""
    __tablename__ = "change_events"

    id = db.Column(db.Integer, primary_key=True)
    entity = db.Column(db.String(10), nullable=False)   # SHIFT|LEAVE|SWAP|USER
    op = db.Column(db.String(10), nullable=False)       # CREATE|UPDATE|DELETE
    entity_id = db.Column(db.Integer, nullable=False)
    payload = db.Column(db.JSON, nullable=False, default=dict)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "entity": self.entity,
            "op": self.op,
            "entity_id": self.entity_id,
            "payload": self.payload,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
