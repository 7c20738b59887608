from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


ROLE_OWNER = "OWNER"
ROLE_MANAGER = "MANAGER"
ROLE_CASHIER = "CASHIER"
ROLE_KITCHEN = "KITCHEN"

ROLES = (ROLE_OWNER, ROLE_MANAGER, ROLE_CASHIER, ROLE_KITCHEN)
APPROVER_ROLES = (ROLE_OWNER, ROLE_MANAGER)


class Staff(db.Model):
    """
    Staff account used for attribution, attendance and approvals.

    WHY: Every sale, production run, transfer and closing must be
    attributable to one person. Managers and owners also act as approvers
    for early or unbalanced shift closings.

    shift_start_time / shift_end_time are wall-clock "HH:MM" strings in the
    outlet timezone. Missing values fall back to DEFAULT_SHIFT_START/END.
    """
    __tablename__ = "staff"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    username = db.Column(db.String(64), nullable=False, unique=True, index=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(16), nullable=False, index=True)  # OWNER, MANAGER, CASHIER, KITCHEN

    shift_start_time = db.Column(db.String(5), nullable=True)
    shift_end_time = db.Column(db.String(5), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    outlet_access = db.relationship(
        "StaffOutletAccess",
        backref=db.backref("staff", lazy=True),
        lazy=True,
        cascade="all, delete-orphan",
    )

    @property
    def outlet_ids(self) -> list[int]:
        return sorted(a.outlet_id for a in self.outlet_access)

    @property
    def is_approver(self) -> bool:
        return self.role in APPROVER_ROLES

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "username": self.username,
            "role": self.role,
            "shift_start_time": self.shift_start_time,
            "shift_end_time": self.shift_end_time,
            "outlet_ids": self.outlet_ids,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }


class StaffOutletAccess(db.Model):
    """
    Outlets a staff member is assigned to.

    WHY: A cashier may rotate between branches, but may only act in the
    outlets listed here. Owners can act in every outlet.
    """
    __tablename__ = "staff_outlet_access"
    __table_args__ = (
        db.UniqueConstraint("staff_id", "outlet_id", name="uq_staff_outlet_access"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    staff_id = db.Column(db.Integer, db.ForeignKey("staff.id"), nullable=False, index=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)

    outlet = db.relationship("Outlet")


class SessionToken(db.Model):
    """
    Bearer session tokens.

    SECURITY: only the SHA-256 hash of the token is stored.
    """
    __tablename__ = "session_tokens"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    staff_id = db.Column(db.Integer, db.ForeignKey("staff.id"), nullable=False, index=True)
    token_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    is_revoked = db.Column(db.Boolean, nullable=False, default=False)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    staff = db.relationship("Staff", backref=db.backref("sessions", lazy=True))
