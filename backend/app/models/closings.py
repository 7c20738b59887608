from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


class DailyClosing(db.Model):
    """
    Shift closing record (terminal, immutable).

    INVARIANTS:
    - expected_cash = opening_balance + total_sales_cash - total_expenses
    - discrepancy = actual_cash - expected_cash
    - at most one record per (staff, outlet, shift_name, business_date)

    All amounts in Rupiah. A closing never touches inventory.
    """
    __tablename__ = "daily_closings"
    __table_args__ = (
        db.UniqueConstraint(
            "staff_id", "outlet_id", "shift_name", "business_date",
            name="uq_daily_closings_staff_outlet_shift_day",
        ),
        db.Index("ix_daily_closings_outlet_day", "outlet_id", "business_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    staff_id = db.Column(db.Integer, db.ForeignKey("staff.id"), nullable=False, index=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)

    shift_name = db.Column(db.String(32), nullable=False)
    business_date = db.Column(db.Date, nullable=False)

    window_start = db.Column(db.DateTime(timezone=True), nullable=False)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=False)

    opening_balance = db.Column(db.Integer, nullable=False, default=0)
    total_sales_cash = db.Column(db.Integer, nullable=False, default=0)
    total_sales_qris = db.Column(db.Integer, nullable=False, default=0)
    total_expenses = db.Column(db.Integer, nullable=False, default=0)
    expected_cash = db.Column(db.Integer, nullable=False, default=0)
    actual_cash = db.Column(db.Integer, nullable=False)
    discrepancy = db.Column(db.Integer, nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)

    approved_by_staff_id = db.Column(db.Integer, db.ForeignKey("staff.id"), nullable=True)
    approval_reasons = db.Column(db.JSON, nullable=False, default=list)

    staff = db.relationship("Staff", foreign_keys=[staff_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "staff_id": self.staff_id,
            "outlet_id": self.outlet_id,
            "shift_name": self.shift_name,
            "business_date": self.business_date.isoformat(),
            "window_start": to_utc_z(self.window_start),
            "closed_at": to_utc_z(self.closed_at),
            "opening_balance": self.opening_balance,
            "total_sales_cash": self.total_sales_cash,
            "total_sales_qris": self.total_sales_qris,
            "total_expenses": self.total_expenses,
            "expected_cash": self.expected_cash,
            "actual_cash": self.actual_cash,
            "discrepancy": self.discrepancy,
            "notes": self.notes,
            "approved_by_staff_id": self.approved_by_staff_id,
            "approval_reasons": self.approval_reasons,
        }
