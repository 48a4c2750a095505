from datetime import datetime
from oncall_api.extensions import db

NOTIFICATION_TYPES = (
    "LEAVE_REQUEST",
    "LEAVE_APPROVED",
    "LEAVE_REJECTED",
    "SHIFT_ASSIGNED",
    "SHIFT_SWAPPED",
    "general",
)


class Notification(db.Model):
    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = db.Column(db.String(20), nullable=False, default="general")
    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.Text, nullable=False)
    read = db.Column(db.Boolean, nullable=False, default=False)
    related_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "read": self.read,
            "related_id": self.related_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
