from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


class Attendance(db.Model):
    """
    Clock-in / clock-out record.

    WHY: The open attendance record of a staff member at an outlet is the
    active shift. Its clock_in_at is where the closing window starts.

    status is decided at clock-in against the staff shift start:
    ON_TIME or LATE. business_date is the outlet-local calendar day of
    clock_in_at.
    """
    __tablename__ = "attendance"
    __table_args__ = (
        db.Index("ix_attendance_staff_outlet_clock_in", "staff_id", "outlet_id", "clock_in_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    staff_id = db.Column(db.Integer, db.ForeignKey("staff.id"), nullable=False, index=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)

    clock_in_at = db.Column(db.DateTime(timezone=True), nullable=False)
    clock_out_at = db.Column(db.DateTime(timezone=True), nullable=True)

    status = db.Column(db.String(8), nullable=False)  # ON_TIME, LATE
    business_date = db.Column(db.Date, nullable=False, index=True)

    staff = db.relationship("Staff", backref=db.backref("attendance", lazy=True))

    @property
    def is_open(self) -> bool:
        return self.clock_out_at is None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "staff_id": self.staff_id,
            "outlet_id": self.outlet_id,
            "clock_in_at": to_utc_z(self.clock_in_at),
            "clock_out_at": to_utc_z(self.clock_out_at) if self.clock_out_at else None,
            "status": self.status,
            "business_date": self.business_date.isoformat(),
        }
