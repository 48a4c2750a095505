from datetime import datetime
from oncall_api.extensions import db

SWAP_PENDING = "PENDING"
SWAP_APPROVED = "APPROVED"
SWAP_REJECTED = "REJECTED"


class SwapRequest(db.Model):
    __tablename__ = "swap_requests"

    id = db.Column(db.Integer, primary_key=True)
    requester_shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id", ondelete="CASCADE"), nullable=False)
    requester_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    # target_user_id NULL marks an open offer; filled in when a teammate accepts.
    # target_shift_id alone can go NULL when the target shift is removed
    target_shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id", ondelete="SET NULL"), nullable=True)
    target_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)

    reason = db.Column(db.Text, nullable=False, default="")
    status = db.Column(db.String(12), nullable=False, default=SWAP_PENDING)  # PENDING|APPROVED|REJECTED
    response_notes = db.Column(db.Text)
    responded_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))

    requested_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    responded_at = db.Column(db.DateTime)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    requester_shift = db.relationship("Shift", foreign_keys=[requester_shift_id])
    target_shift = db.relationship("Shift", foreign_keys=[target_shift_id])
    requester = db.relationship("User", foreign_keys=[requester_user_id])
    target_user = db.relationship("User", foreign_keys=[target_user_id])

    @property
    def is_open_offer(self) -> bool:
        return self.target_user_id is None

    def to_dict(self):
        return {
            "id": self.id,
            "requester_shift_id": self.requester_shift_id,
            "requester_user_id": self.requester_user_id,
            "target_shift_id": self.target_shift_id,
            "target_user_id": self.target_user_id,
            "reason": self.reason,
            "status": self.status,
            "response_notes": self.response_notes,
            "responded_by_user_id": self.responded_by_user_id,
            "requested_at": self.requested_at.isoformat() if self.requested_at else None,
            "responded_at": self.responded_at.isoformat() if self.responded_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
