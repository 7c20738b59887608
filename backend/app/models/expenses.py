from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


class ExpenseType(db.Model):
    """Expense category (e.g. "GAS", "ES BATU", "BELANJA STOK")."""
    __tablename__ = "expense_types"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "is_active": self.is_active}


class Expense(db.Model):
    """
    Cash paid out of the till.

    WHY: source makes the origin explicit. MANUAL expenses are entered by
    staff; AUTO_PURCHASE ones are written by record_purchase and link back to
    the purchase. Both reduce expected cash at closing.
    """
    __tablename__ = "expenses"
    __table_args__ = (
        db.Index("ix_expenses_outlet_staff_occurred", "outlet_id", "staff_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)
    staff_id = db.Column(db.Integer, db.ForeignKey("staff.id"), nullable=False, index=True)
    expense_type_id = db.Column(db.Integer, db.ForeignKey("expense_types.id"), nullable=True)

    category = db.Column(db.String(64), nullable=False)
    amount = db.Column(db.Integer, nullable=False)  # Rupiah
    description = db.Column(db.String(255), nullable=True)

    source = db.Column(db.String(16), nullable=False, default="MANUAL")  # MANUAL, AUTO_PURCHASE
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=True, unique=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False)

    expense_type = db.relationship("ExpenseType")
    purchase = db.relationship("Purchase", backref=db.backref("expense", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "outlet_id": self.outlet_id,
            "staff_id": self.staff_id,
            "expense_type_id": self.expense_type_id,
            "category": self.category,
            "amount": self.amount,
            "description": self.description,
            "source": self.source,
            "purchase_id": self.purchase_id,
            "occurred_at": to_utc_z(self.occurred_at),
        }
