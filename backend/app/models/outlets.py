from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


class Outlet(db.Model):
    """
    A physical food-service outlet (branch).

    WHY: Every stock fact, sale, expense and shift belongs to exactly one
    outlet. Operations always receive outlet_id explicitly; nothing reads a
    "currently selected outlet" from ambient state.

    timezone drives wall-clock rules: calendar day of a closing and the
    morning/evening shift split.
    """
    __tablename__ = "outlets"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    code = db.Column(db.String(32), nullable=True, unique=True, index=True)
    address = db.Column(db.String(255), nullable=True)
    timezone = db.Column(db.String(64), nullable=True)  # IANA name; falls back to BUSINESS_TIMEZONE

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Outlet id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "address": self.address,
            "timezone": self.timezone,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
