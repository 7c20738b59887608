from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


class Transaction(db.Model):
    """
    Point-of-sale transaction.

    WHY: CLOSED transactions feed both the cash side of a shift closing and
    the outbound side of stock reconstruction. VOIDED ones feed neither.

    All amounts in Rupiah (integers).
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_outlet_status_occurred", "outlet_id", "status", "occurred_at"),
        db.Index("ix_transactions_cashier_occurred", "cashier_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)
    cashier_id = db.Column(db.Integer, db.ForeignKey("staff.id"), nullable=False, index=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False)

    payment_method = db.Column(db.String(8), nullable=False)  # CASH, QRIS
    subtotal = db.Column(db.Integer, nullable=False, default=0)
    total = db.Column(db.Integer, nullable=False, default=0)
    total_cost = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default="CLOSED", index=True)  # CLOSED, VOIDED

    # Void audit trail
    voided_by_staff_id = db.Column(db.Integer, db.ForeignKey("staff.id"), nullable=True)
    voided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    void_reason = db.Column(db.String(255), nullable=True)

    lines = db.relationship(
        "TransactionLine",
        backref=db.backref("transaction", lazy=True),
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "outlet_id": self.outlet_id,
            "cashier_id": self.cashier_id,
            "occurred_at": to_utc_z(self.occurred_at),
            "payment_method": self.payment_method,
            "subtotal": self.subtotal,
            "total": self.total,
            "total_cost": self.total_cost,
            "status": self.status,
            "voided_by_staff_id": self.voided_by_staff_id,
            "voided_at": to_utc_z(self.voided_at) if self.voided_at else None,
            "void_reason": self.void_reason,
            "lines": [line.to_dict() for line in self.lines],
        }


class TransactionLine(db.Model):
    """
    One sold product on a transaction.

    bom_snapshot freezes the product's BOM at sale time:
    [{"inventory_item_id": int, "item_name": str, "quantity": "0.250"}, ...]
    Quantities are per unit sold. Later recipe edits never rewrite history.
    """
    __tablename__ = "transaction_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    product_name = db.Column(db.String(120), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Integer, nullable=False)
    line_total = db.Column(db.Integer, nullable=False)

    bom_snapshot = db.Column(db.JSON, nullable=False, default=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "line_total": self.line_total,
            "bom_snapshot": self.bom_snapshot,
        }
