from datetime import datetime
from oncall_api.extensions import db

LEAVE_TYPES = ("PAID", "SICK", "COMP_OFF")

LEAVE_PENDING = "PENDING"
LEAVE_APPROVED = "APPROVED"
LEAVE_REJECTED = "REJECTED"
LEAVE_CANCELLED = "CANCELLED"


class LeaveRequest(db.Model):
    __tablename__ = "leave_requests"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    type = db.Column(db.String(12), nullable=False)                              # PAID|SICK|COMP_OFF
    status = db.Column(db.String(12), nullable=False, default=LEAVE_PENDING)     # PENDING|APPROVED|REJECTED|CANCELLED
    reason = db.Column(db.Text)
    manager_comment = db.Column(db.Text)

    approved_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    responded_at = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = db.relationship("User", foreign_keys=[user_id], lazy="joined")
    approved_by = db.relationship("User", foreign_keys=[approved_by_user_id])

    __table_args__ = (
        db.Index("ix_leave_user_status_range", "user_id", "status", "start_date", "end_date"),
    )

    @property
    def total_days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    def covers(self, day) -> bool:
        return self.start_date <= day <= self.end_date

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "user_name": self.user.full_name if self.user else None,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "total_days": self.total_days,
            "type": self.type,
            "status": self.status,
            "reason": self.reason,
            "manager_comment": self.manager_comment,
            "approved_by_user_id": self.approved_by_user_id,
            "responded_at": self.responded_at.isoformat() if self.responded_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class LeaveApprovalAction(db.Model):
    __tablename__ = "leave_approval_actions"
    id = db.Column(db.Integer, primary_key=True)
    leave_request_id = db.Column(db.Integer, db.ForeignKey("leave_requests.id", ondelete="CASCADE"), nullable=False, index=True)
    action = db.Column(db.String(20), nullable=False)  # applied|approved|rejected|cancelled|commented
    comment = db.Column(db.Text)
    acted_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    acted_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    acted_by = db.relationship("User")
