# Overview: Service-layer operations for purchases and expenses; restocks and till pay-outs.

"""
Purchases & Expenses

WHY: Buying stock with till cash is both a stock movement and a cash
movement. record_purchase credits the item and writes the matching
AUTO_PURCHASE expense in the same unit of work, so the closing sees the
cash leave and the reconstructor sees the stock arrive.

- Cashiers may only purchase items flagged can_cashier_purchase.
- Manual expenses are source=MANUAL and carry an expense type.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import Purchase, Expense, ExpenseType, InventoryItem
from ..models.staff import ROLE_CASHIER
from ..errors import AuthorizationFailedError, NotFoundError
from . import event_store, sync_service
from .concurrency import lock_for_update, run_with_retry
from .inventory_service import get_item, to_quantity
from app.time_utils import utcnow


EXPENSE_SOURCE_MANUAL = "MANUAL"
EXPENSE_SOURCE_AUTO_PURCHASE = "AUTO_PURCHASE"

STOCK_PURCHASE_CATEGORY = "BELANJA STOK"


def _amount(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{field} must be an integer amount in Rupiah")
    if value < 0:
        raise ValueError(f"{field} cannot be negative")
    return value


def record_purchase(
    outlet_id: int,
    staff_id: int,
    role: str,
    inventory_item_id: int,
    quantity,
    total_price: int,
    *,
    now: datetime | None = None,
) -> Purchase:
    """
    Record a stock purchase paid from the till.

    Returns:
        Purchase: The receipt; purchase.expense holds the AUTO_PURCHASE expense

    Raises:
        ValueError: Bad quantity or price
        NotFoundError: Item not in this outlet
        AuthorizationFailedError: Cashier buying an item not open to cashiers
    """
    def _op():
        now_ = now or utcnow()
        qty = to_quantity(quantity)
        if qty <= 0:
            raise ValueError("Quantity must be positive")
        price = _amount(total_price, "total_price")

        get_item(outlet_id, inventory_item_id)
        item = lock_for_update(db.session.query(InventoryItem).filter_by(id=inventory_item_id)).first()
        if role == ROLE_CASHIER and not item.can_cashier_purchase:
            raise AuthorizationFailedError(f"Cashiers may not purchase {item.name}")

        event_store.update_inventory_item(item, qty)

        purchase = Purchase(
            outlet_id=outlet_id,
            staff_id=staff_id,
            inventory_item_id=item.id,
            item_name=item.name,
            quantity=qty,
            total_price=price,
            occurred_at=now_,
        )
        db.session.add(purchase)
        db.session.flush()

        expense = Expense(
            outlet_id=outlet_id,
            staff_id=staff_id,
            expense_type_id=_stock_purchase_type().id,
            category=STOCK_PURCHASE_CATEGORY,
            amount=price,
            description=f"{item.name} {qty} {item.unit}",
            source=EXPENSE_SOURCE_AUTO_PURCHASE,
            purchase_id=purchase.id,
            occurred_at=now_,
        )
        db.session.add(expense)
        db.session.flush()

        sync_service.enqueue("purchase", purchase.id, purchase.to_dict(), outlet_id=outlet_id)
        sync_service.enqueue("expense", expense.id, expense.to_dict(), outlet_id=outlet_id)
        current_app.logger.info(
            "Purchase recorded id=%s outlet=%s item=%s qty=%s price=%s",
            purchase.id, outlet_id, item.name, qty, price,
        )
        return purchase

    return run_with_retry(_op)


def _stock_purchase_type() -> ExpenseType:
    expense_type = db.session.query(ExpenseType).filter_by(name=STOCK_PURCHASE_CATEGORY).first()
    if expense_type is None:
        expense_type = ExpenseType(name=STOCK_PURCHASE_CATEGORY, is_active=True)
        db.session.add(expense_type)
        db.session.flush()
    return expense_type


def record_expense(
    outlet_id: int,
    staff_id: int,
    expense_type_id: int,
    amount: int,
    description: str | None = None,
    *,
    now: datetime | None = None,
) -> Expense:
    def _op():
        value = _amount(amount, "amount")
        if value == 0:
            raise ValueError("amount must be positive")
        expense_type = db.session.get(ExpenseType, expense_type_id)
        if not expense_type or not expense_type.is_active:
            raise NotFoundError(f"Expense type {expense_type_id} not found")

        expense = Expense(
            outlet_id=outlet_id,
            staff_id=staff_id,
            expense_type_id=expense_type.id,
            category=expense_type.name,
            amount=value,
            description=description,
            source=EXPENSE_SOURCE_MANUAL,
            occurred_at=now or utcnow(),
        )
        db.session.add(expense)
        db.session.flush()

        sync_service.enqueue("expense", expense.id, expense.to_dict(), outlet_id=outlet_id)
        current_app.logger.info(
            "Expense recorded id=%s outlet=%s category=%s amount=%s",
            expense.id, outlet_id, expense.category, value,
        )
        return expense

    return run_with_retry(_op)


def create_expense_type(name: str) -> ExpenseType:
    name = (name or "").strip().upper()
    if not name:
        raise ValueError("Expense type name is required")
    if db.session.query(ExpenseType).filter_by(name=name).first():
        raise ValueError(f"Expense type {name!r} already exists")
    expense_type = ExpenseType(name=name, is_active=True)
    db.session.add(expense_type)
    db.session.flush()
    return expense_type


def list_expense_types() -> list[ExpenseType]:
    return (
        db.session.query(ExpenseType)
        .filter(ExpenseType.is_active.is_(True))
        .order_by(ExpenseType.name.asc())
        .all()
    )
