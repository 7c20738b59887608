# Overview: Event store facade; filtered reads over the append-only event tables.

"""
Event Store

The append-only collections (transactions, purchases, production records,
stock transfers, expenses, attendance, daily closings) are ordinary tables.
This module is the single read surface over them plus the one permitted
mutation of stock: update_inventory_item.

Filter semantics:
- Every filter is optional; None means "do not filter".
- Window bounds are inclusive: start <= occurred_at <= end.
- Results are ordered oldest first.

Appends live with the operation that creates the event (production_service,
transfer_service, sales_service, purchase_service, timekeeping_service,
closing_service); they flush, the caller commits.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from ..extensions import db
from ..models import (
    InventoryItem, Transaction, Purchase, ProductionRecord, StockTransfer,
    Expense, Attendance, DailyClosing,
)
from ..errors import InsufficientStockError


def _window(query, column, start: datetime | None, end: datetime | None):
    if start is not None:
        query = query.filter(column >= start)
    if end is not None:
        query = query.filter(column <= end)
    return query


def list_transactions(
    outlet_id: int | None = None,
    cashier_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    status: str | None = None,
) -> list[Transaction]:
    q = db.session.query(Transaction)
    if outlet_id is not None:
        q = q.filter(Transaction.outlet_id == outlet_id)
    if cashier_id is not None:
        q = q.filter(Transaction.cashier_id == cashier_id)
    if status is not None:
        q = q.filter(Transaction.status == status)
    q = _window(q, Transaction.occurred_at, start, end)
    return q.order_by(Transaction.occurred_at.asc(), Transaction.id.asc()).all()


def list_purchases(
    outlet_id: int | None = None,
    staff_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[Purchase]:
    q = db.session.query(Purchase)
    if outlet_id is not None:
        q = q.filter(Purchase.outlet_id == outlet_id)
    if staff_id is not None:
        q = q.filter(Purchase.staff_id == staff_id)
    q = _window(q, Purchase.occurred_at, start, end)
    return q.order_by(Purchase.occurred_at.asc(), Purchase.id.asc()).all()


def list_production_records(
    outlet_id: int | None = None,
    staff_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[ProductionRecord]:
    q = db.session.query(ProductionRecord)
    if outlet_id is not None:
        q = q.filter(ProductionRecord.outlet_id == outlet_id)
    if staff_id is not None:
        q = q.filter(ProductionRecord.staff_id == staff_id)
    q = _window(q, ProductionRecord.occurred_at, start, end)
    return q.order_by(ProductionRecord.occurred_at.asc(), ProductionRecord.id.asc()).all()


def list_stock_transfers(
    outlet_id: int | None = None,
    staff_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    status: str | None = None,
) -> list[StockTransfer]:
    """outlet_id matches either end of the transfer."""
    q = db.session.query(StockTransfer)
    if outlet_id is not None:
        q = q.filter(db.or_(
            StockTransfer.from_outlet_id == outlet_id,
            StockTransfer.to_outlet_id == outlet_id,
        ))
    if staff_id is not None:
        q = q.filter(db.or_(
            StockTransfer.created_by_staff_id == staff_id,
            StockTransfer.responded_by_staff_id == staff_id,
        ))
    if status is not None:
        q = q.filter(StockTransfer.status == status)
    q = _window(q, StockTransfer.occurred_at, start, end)
    return q.order_by(StockTransfer.occurred_at.asc(), StockTransfer.id.asc()).all()


def list_expenses(
    outlet_id: int | None = None,
    staff_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    source: str | None = None,
) -> list[Expense]:
    q = db.session.query(Expense)
    if outlet_id is not None:
        q = q.filter(Expense.outlet_id == outlet_id)
    if staff_id is not None:
        q = q.filter(Expense.staff_id == staff_id)
    if source is not None:
        q = q.filter(Expense.source == source)
    q = _window(q, Expense.occurred_at, start, end)
    return q.order_by(Expense.occurred_at.asc(), Expense.id.asc()).all()


def list_attendance(
    outlet_id: int | None = None,
    staff_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    open_only: bool = False,
) -> list[Attendance]:
    q = db.session.query(Attendance)
    if outlet_id is not None:
        q = q.filter(Attendance.outlet_id == outlet_id)
    if staff_id is not None:
        q = q.filter(Attendance.staff_id == staff_id)
    if open_only:
        q = q.filter(Attendance.clock_out_at.is_(None))
    q = _window(q, Attendance.clock_in_at, start, end)
    return q.order_by(Attendance.clock_in_at.asc(), Attendance.id.asc()).all()


def list_daily_closings(
    outlet_id: int | None = None,
    staff_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    business_date=None,
    shift_name: str | None = None,
) -> list[DailyClosing]:
    q = db.session.query(DailyClosing)
    if outlet_id is not None:
        q = q.filter(DailyClosing.outlet_id == outlet_id)
    if staff_id is not None:
        q = q.filter(DailyClosing.staff_id == staff_id)
    if business_date is not None:
        q = q.filter(DailyClosing.business_date == business_date)
    if shift_name is not None:
        q = q.filter(DailyClosing.shift_name == shift_name)
    q = _window(q, DailyClosing.closed_at, start, end)
    return q.order_by(DailyClosing.closed_at.asc(), DailyClosing.id.asc()).all()


def update_inventory_item(item: InventoryItem, delta: Decimal) -> InventoryItem:
    """
    Apply a signed quantity delta to an item's on-hand quantity.

    INVARIANT: quantity never goes below zero. Raises InsufficientStockError
    before touching the row when it would.
    """
    current = Decimal(item.quantity or 0)
    new_quantity = current + Decimal(delta)
    if new_quantity < 0:
        raise InsufficientStockError(item.name, current, -Decimal(delta))
    item.quantity = new_quantity
    db.session.flush()
    return item
