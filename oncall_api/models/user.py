from datetime import datetime
from oncall_api.extensions import db
from werkzeug.security import generate_password_hash, check_password_hash

ROLE_EMPLOYEE = "EMPLOYEE"
ROLE_MANAGER = "MANAGER"
ROLE_ADMIN = "ADMIN"
ROLES = (ROLE_EMPLOYEE, ROLE_MANAGER, ROLE_ADMIN)

# leave type -> balance column
BALANCE_FIELDS = {
    "PAID": "paid_leaves",
    "SICK": "sick_leaves",
    "COMP_OFF": "comp_offs",
}


class User(db.Model):
    __tablename__ = "users"

    id            = db.Column(db.Integer, primary_key=True)
    username      = db.Column(db.String(64), unique=True, index=True, nullable=False)
    email         = db.Column(db.String(255), unique=True, index=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    first_name    = db.Column(db.String(80), nullable=False)
    last_name     = db.Column(db.String(80), nullable=False, default="")
    role          = db.Column(db.String(16), nullable=False, default=ROLE_EMPLOYEE)  # EMPLOYEE|MANAGER|ADMIN
    manager_id    = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    paid_leaves = db.Column(db.Integer, nullable=False, default=20)
    sick_leaves = db.Column(db.Integer, nullable=False, default=12)
    comp_offs   = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    manager = db.relationship("User", remote_side=[id], backref="reports")

    __table_args__ = (
        db.CheckConstraint("paid_leaves >= 0", name="ck_users_paid_leaves_nonneg"),
        db.CheckConstraint("sick_leaves >= 0", name="ck_users_sick_leaves_nonneg"),
        db.CheckConstraint("comp_offs >= 0", name="ck_users_comp_offs_nonneg"),
    )

    # --- helpers ---
    def set_password(self, raw: str):
        self.password_hash = generate_password_hash(raw)

    def check_password(self, raw: str) -> bool:
        return check_password_hash(self.password_hash, raw)

    @property
    def full_name(self) -> str:
        return " ".join(p for p in ((self.first_name or "").strip(), (self.last_name or "").strip()) if p)

    def role_codes(self):
        return [self.role]

    def balance_for(self, leave_type: str) -> int:
        return int(getattr(self, BALANCE_FIELDS[leave_type]) or 0)

    def to_dict(self):
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name,
            "role": self.role,
            "manager_id": self.manager_id,
            "paid_leaves": self.paid_leaves,
            "sick_leaves": self.sick_leaves,
            "comp_offs": self.comp_offs,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r} role={self.role}>"
