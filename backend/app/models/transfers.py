from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z
from .inventory import Quantity


class StockTransfer(db.Model):
    """
    Inter-outlet stock transfer.

    LIFECYCLE:
    - PENDING: sender already debited, goods in transit
    - ACCEPTED: destination credited (item created there if missing)
    - REJECTED: sender credited back

    ACCEPTED and REJECTED are terminal.

    Items are matched across outlets by item_name; ids are outlet-local.
    """
    __tablename__ = "stock_transfers"
    __table_args__ = (
        db.Index("ix_stock_transfers_from_status", "from_outlet_id", "status"),
        db.Index("ix_stock_transfers_to_status", "to_outlet_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    from_outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)
    to_outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)

    item_name = db.Column(db.String(120), nullable=False)
    quantity = db.Column(Quantity, nullable=False)
    unit = db.Column(db.String(16), nullable=False)

    status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)

    created_by_staff_id = db.Column(db.Integer, db.ForeignKey("staff.id"), nullable=False)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False)

    responded_by_staff_id = db.Column(db.Integer, db.ForeignKey("staff.id"), nullable=True)
    responded_at = db.Column(db.DateTime(timezone=True), nullable=True)

    from_outlet = db.relationship("Outlet", foreign_keys=[from_outlet_id])
    to_outlet = db.relationship("Outlet", foreign_keys=[to_outlet_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "from_outlet_id": self.from_outlet_id,
            "to_outlet_id": self.to_outlet_id,
            "item_name": self.item_name,
            "quantity": str(self.quantity),
            "unit": self.unit,
            "status": self.status,
            "created_by_staff_id": self.created_by_staff_id,
            "occurred_at": to_utc_z(self.occurred_at),
            "responded_by_staff_id": self.responded_by_staff_id,
            "responded_at": to_utc_z(self.responded_at) if self.responded_at else None,
        }
