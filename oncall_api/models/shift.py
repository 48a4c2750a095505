from datetime import datetime
from oncall_api.extensions import db

ROLE_PRIMARY = "PRIMARY"
ROLE_BACKUP = "BACKUP"
ON_CALL_ROLES = (ROLE_PRIMARY, ROLE_BACKUP)

STATUS_SCHEDULED = "SCHEDULED"
STATUS_COMPLETED = "COMPLETED"
STATUS_SWAPPED = "SWAPPED"
SHIFT_STATUSES = (STATUS_SCHEDULED, STATUS_COMPLETED, STATUS_SWAPPED)


class Shift(db.Model):
    __tablename__ = "shifts"

    id = db.Column(db.Integer, primary_key=True)
    # NULL once the owner is offboarded; the slot stays on the calendar
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    date = db.Column(db.Date, nullable=False, index=True)
    on_call_role = db.Column(db.String(10), nullable=False)                        # PRIMARY|BACKUP
    status = db.Column(db.String(12), nullable=False, default=STATUS_SCHEDULED)   # SCHEDULED|COMPLETED|SWAPPED

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = db.relationship("User", lazy="joined")

    __table_args__ = (
        db.UniqueConstraint("date", "on_call_role", name="uq_shift_date_role"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "username": self.user.username if self.user else None,
            "date": self.date.isoformat(),
            "on_call_role": self.on_call_role,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<Shift id={self.id} {self.date} {self.on_call_role} user={self.user_id}>"
