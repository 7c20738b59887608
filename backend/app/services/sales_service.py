"""
Sales Service - point-of-sale transactions with BOM stock deduction

WHY: Every sold product consumes its bill of materials from the selling
outlet's stock. The BOM is frozen onto the transaction line so later menu
edits never change what a past sale consumed.

RULES:
- BOM entries may point at another outlet's (template) row; deduction goes
  to the selling outlet's row with the same name.
- BOM entries with no row in the selling outlet are not deducted.
- Stock is checked for the whole cart before anything is deducted.
- Voiding a sale returns its BOM consumption to stock and removes it from
  shift cash and stock reconstruction (only CLOSED transactions count).
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from flask import current_app

from ..extensions import db
from ..models import Transaction, TransactionLine, Product, ProductBomLine, InventoryItem
from ..errors import InsufficientStockError, InvalidStateError, NotFoundError
from . import event_store, sync_service
from .concurrency import lock_for_update, run_with_retry
from .inventory_service import resolve_local_item, to_quantity
from app.time_utils import utcnow


TX_STATUS_CLOSED = "CLOSED"
TX_STATUS_VOIDED = "VOIDED"

PAYMENT_METHODS = ("CASH", "QRIS")


def _bom_snapshot(product: Product) -> list[dict]:
    return [
        {
            "inventory_item_id": line.inventory_item_id,
            "item_name": line.inventory_item.name if line.inventory_item else None,
            "quantity": str(to_quantity(line.quantity)),
        }
        for line in product.bom_lines
    ]


def _local_consumption(outlet_id: int, lines: list[TransactionLine]) -> tuple[dict, dict]:
    """Map local item id -> (item, total quantity) over all lines' BOMs."""
    items = {}
    required: dict[int, Decimal] = {}
    for line in lines:
        for entry in line.bom_snapshot or []:
            item = resolve_local_item(
                outlet_id,
                item_id=entry.get("inventory_item_id"),
                item_name=entry.get("item_name"),
            )
            if item is None:
                current_app.logger.warning(
                    "BOM item %s of %s has no row in outlet %s; not deducted",
                    entry.get("item_name"), line.product_name, outlet_id,
                )
                continue
            items[item.id] = item
            required[item.id] = required.get(item.id, Decimal("0")) + to_quantity(entry["quantity"]) * line.quantity
    return items, required


def record_sale(
    outlet_id: int,
    cashier_id: int,
    lines: list[dict],
    payment_method: str,
    *,
    now: datetime | None = None,
) -> Transaction:
    """
    Record a closed sale and deduct its BOM consumption.

    Args:
        lines: [{"product_id": int, "quantity": int}]
        payment_method: CASH or QRIS

    Raises:
        ValueError: Empty cart, bad quantity or payment method
        NotFoundError: Unknown or unavailable product
        InsufficientStockError: A BOM item is short; nothing was deducted
    """
    def _op():
        method = (payment_method or "").upper()
        if method not in PAYMENT_METHODS:
            raise ValueError(f"payment_method must be one of {', '.join(PAYMENT_METHODS)}")
        if not lines:
            raise ValueError("Cart is empty")

        tx = Transaction(
            outlet_id=outlet_id,
            cashier_id=cashier_id,
            occurred_at=now or utcnow(),
            payment_method=method,
            status=TX_STATUS_CLOSED,
        )

        for raw in lines:
            quantity = raw.get("quantity")
            if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
                raise ValueError("Line quantity must be a positive integer")
            product = db.session.get(Product, raw.get("product_id"))
            if not product or not product.is_available:
                raise NotFoundError(f"Product {raw.get('product_id')} not available")

            tx.lines.append(TransactionLine(
                product_id=product.id,
                product_name=product.name,
                quantity=quantity,
                unit_price=product.price,
                line_total=product.price * quantity,
                bom_snapshot=_bom_snapshot(product),
            ))

        items, required = _local_consumption(outlet_id, tx.lines)
        for item_id, needed in required.items():
            available = to_quantity(items[item_id].quantity)
            if available < needed:
                raise InsufficientStockError(items[item_id].name, available, needed)

        total_cost = Decimal("0")
        for item_id, needed in required.items():
            event_store.update_inventory_item(items[item_id], -needed)
            total_cost += needed * items[item_id].cost_per_unit

        tx.subtotal = sum(line.line_total for line in tx.lines)
        tx.total = tx.subtotal
        tx.total_cost = int(total_cost.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

        db.session.add(tx)
        db.session.flush()

        sync_service.enqueue("transaction", tx.id, tx.to_dict(), outlet_id=outlet_id)
        current_app.logger.info(
            "Sale recorded id=%s outlet=%s cashier=%s total=%s method=%s",
            tx.id, outlet_id, cashier_id, tx.total, method,
        )
        return tx

    return run_with_retry(_op)


def void_sale(
    transaction_id: int,
    outlet_id: int,
    staff_id: int,
    reason: str | None = None,
    *,
    now: datetime | None = None,
) -> Transaction:
    def _op():
        tx = lock_for_update(db.session.query(Transaction).filter_by(id=transaction_id)).first()
        if not tx or tx.outlet_id != outlet_id:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        if tx.status != TX_STATUS_CLOSED:
            raise InvalidStateError(f"Cannot void transaction in {tx.status} status")

        items, required = _local_consumption(outlet_id, tx.lines)
        for item_id, returned in required.items():
            event_store.update_inventory_item(items[item_id], returned)

        tx.status = TX_STATUS_VOIDED
        tx.voided_by_staff_id = staff_id
        tx.voided_at = now or utcnow()
        tx.void_reason = reason
        db.session.flush()

        sync_service.enqueue("transaction", tx.id, tx.to_dict(), outlet_id=outlet_id)
        current_app.logger.info("Sale voided id=%s by staff=%s", tx.id, staff_id)
        return tx

    return run_with_retry(_op)


def create_product(
    name: str,
    price: int,
    bom: list[dict] | None = None,
    *,
    category: str | None = None,
) -> Product:
    """bom: [{"inventory_item_id": int, "quantity": number}] per unit sold."""
    if not name:
        raise ValueError("Product name is required")
    if isinstance(price, bool) or not isinstance(price, int) or price < 0:
        raise ValueError("price must be a non-negative integer")
    if db.session.query(Product).filter_by(name=name).first():
        raise ValueError(f"Product {name!r} already exists")

    product = Product(name=name, price=price, category=category, is_available=True)
    for entry in bom or []:
        item = db.session.get(InventoryItem, entry.get("inventory_item_id"))
        if not item:
            raise NotFoundError(f"Inventory item {entry.get('inventory_item_id')} not found")
        qty = to_quantity(entry.get("quantity"))
        if qty <= 0:
            raise ValueError("BOM quantity must be positive")
        product.bom_lines.append(ProductBomLine(inventory_item_id=item.id, quantity=qty))

    db.session.add(product)
    db.session.flush()
    return product


def list_products(available_only: bool = True) -> list[Product]:
    q = db.session.query(Product)
    if available_only:
        q = q.filter(Product.is_available.is_(True))
    return q.order_by(Product.name.asc()).all()
