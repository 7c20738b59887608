# backend/app/services/transfer_service.py
"""
Inter-outlet stock transfer service.

WHY: Outlets lend each other stock (a central kitchen sends syrup to a
branch). The sender's stock is debited as soon as the goods leave, and the
receiver decides whether to take them in.

LIFECYCLE:
1. PENDING: Created by the sender, sender debited, goods in transit
2. ACCEPTED: Destination credited (its item row is created if missing)
3. REJECTED: Sender credited back

ACCEPTED and REJECTED are terminal. Items are matched across outlets by
name, because every outlet owns its own row per item name.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from flask import current_app

from app.extensions import db
from app.models import StockTransfer, InventoryItem
from app.errors import AuthorizationFailedError, InvalidStateError, InsufficientStockError, NotFoundError
from app.services import event_store, sync_service
from app.services.closing_service import ensure_shift_open
from app.services.concurrency import lock_for_update, run_with_retry
from app.services.inventory_service import find_item_by_name, to_quantity
from app.services.outlet_service import get_outlet
from app.time_utils import utcnow


# Transfer status constants
TRANSFER_STATUS_PENDING = "PENDING"
TRANSFER_STATUS_ACCEPTED = "ACCEPTED"
TRANSFER_STATUS_REJECTED = "REJECTED"

TRANSFER_RESPONSES = (TRANSFER_STATUS_ACCEPTED, TRANSFER_STATUS_REJECTED)


def initiate_transfer(
    from_outlet_id: int,
    to_outlet_id: int,
    item_name: str,
    quantity,
    staff_id: int,
    *,
    now: datetime | None = None,
) -> StockTransfer:
    """
    Send stock to another outlet (status: PENDING).

    Raises:
        ValueError: Same outlet, or quantity not positive
        NotFoundError: Unknown outlet, or the sender has no such item
        InsufficientStockError: quantity exceeds the sender's on-hand
        InvalidStateError: The cashier already closed today
    """
    def _op():
        now_ = now or utcnow()
        if from_outlet_id == to_outlet_id:
            raise ValueError("Cannot transfer to the same outlet")
        get_outlet(from_outlet_id)
        get_outlet(to_outlet_id)
        ensure_shift_open(staff_id, from_outlet_id, now_)

        qty = to_quantity(quantity)
        if qty <= 0:
            raise ValueError("Quantity must be positive")

        sender_item = find_item_by_name(from_outlet_id, item_name)
        if sender_item is None:
            raise NotFoundError(f"Item {item_name!r} not found in outlet {from_outlet_id}")
        sender_item = lock_for_update(
            db.session.query(InventoryItem).filter_by(id=sender_item.id)
        ).first()

        available = to_quantity(sender_item.quantity)
        if available < qty:
            raise InsufficientStockError(sender_item.name, available, qty)

        event_store.update_inventory_item(sender_item, -qty)

        transfer = StockTransfer(
            from_outlet_id=from_outlet_id,
            to_outlet_id=to_outlet_id,
            item_name=sender_item.name,
            quantity=qty,
            unit=sender_item.unit,
            status=TRANSFER_STATUS_PENDING,
            created_by_staff_id=staff_id,
            occurred_at=now_,
        )
        db.session.add(transfer)
        db.session.flush()

        sync_service.enqueue("stock_transfer", transfer.id, transfer.to_dict(), outlet_id=from_outlet_id)
        current_app.logger.info(
            "Transfer initiated id=%s %s -> %s item=%s qty=%s",
            transfer.id, from_outlet_id, to_outlet_id, transfer.item_name, qty,
        )
        return transfer

    return run_with_retry(_op)


def _credit(outlet_id: int, item_name: str, quantity: Decimal, template: InventoryItem | None, unit: str) -> InventoryItem:
    """Credit outlet_id's row for item_name, creating it from template if missing."""
    item = find_item_by_name(outlet_id, item_name)
    if item is None:
        item = InventoryItem(
            outlet_id=outlet_id,
            name=item_name,
            unit=template.unit if template is not None else unit,
            quantity=Decimal("0"),
            min_stock=template.min_stock if template is not None else Decimal("0"),
            cost_per_unit=template.cost_per_unit if template is not None else 0,
            type=template.type if template is not None else "RAW",
            is_cashier_operated=template.is_cashier_operated if template is not None else False,
            can_cashier_purchase=template.can_cashier_purchase if template is not None else False,
        )
        db.session.add(item)
        db.session.flush()
    return event_store.update_inventory_item(item, quantity)


def respond_to_transfer(
    transfer_id: int,
    response: str,
    outlet_id: int,
    staff_id: int,
    *,
    now: datetime | None = None,
) -> StockTransfer:
    """
    Accept or reject a PENDING transfer as the destination outlet.

    Args:
        transfer_id: Transfer to answer
        response: ACCEPTED or REJECTED
        outlet_id: Outlet the actor is working in (must be the destination)
        staff_id: Staff member answering

    Raises:
        ValueError: Unknown response
        NotFoundError: Transfer not found
        AuthorizationFailedError: Actor is not at the destination outlet
        InvalidStateError: Transfer no longer PENDING, or the cashier already closed today
    """
    def _op():
        now_ = now or utcnow()
        status = (response or "").upper()
        if status not in TRANSFER_RESPONSES:
            raise ValueError(f"Response must be one of {', '.join(TRANSFER_RESPONSES)}")

        transfer = lock_for_update(db.session.query(StockTransfer).filter_by(id=transfer_id)).first()
        if not transfer:
            raise NotFoundError(f"Transfer {transfer_id} not found")

        if transfer.to_outlet_id != outlet_id:
            raise AuthorizationFailedError("Only the destination outlet can respond to this transfer")

        if transfer.status != TRANSFER_STATUS_PENDING:
            raise InvalidStateError(f"Cannot respond to transfer in {transfer.status} status")

        ensure_shift_open(staff_id, outlet_id, now_)

        sender_item = find_item_by_name(transfer.from_outlet_id, transfer.item_name)
        quantity = to_quantity(transfer.quantity)

        if status == TRANSFER_STATUS_ACCEPTED:
            _credit(transfer.to_outlet_id, transfer.item_name, quantity, sender_item, transfer.unit)
        else:
            _credit(transfer.from_outlet_id, transfer.item_name, quantity, sender_item, transfer.unit)

        transfer.status = status
        transfer.responded_by_staff_id = staff_id
        transfer.responded_at = now_
        db.session.flush()

        sync_service.enqueue("stock_transfer", transfer.id, transfer.to_dict(), outlet_id=transfer.to_outlet_id)
        current_app.logger.info(
            "Transfer responded id=%s status=%s by staff=%s", transfer.id, status, staff_id,
        )
        return transfer

    return run_with_retry(_op)


def get_transfer(transfer_id: int) -> StockTransfer:
    transfer = db.session.get(StockTransfer, transfer_id)
    if not transfer:
        raise NotFoundError(f"Transfer {transfer_id} not found")
    return transfer


def list_incoming(outlet_id: int, status: str | None = TRANSFER_STATUS_PENDING) -> list[StockTransfer]:
    q = db.session.query(StockTransfer).filter(StockTransfer.to_outlet_id == outlet_id)
    if status:
        q = q.filter(StockTransfer.status == status)
    return q.order_by(StockTransfer.occurred_at.desc()).all()


def list_outgoing(outlet_id: int, status: str | None = None) -> list[StockTransfer]:
    q = db.session.query(StockTransfer).filter(StockTransfer.from_outlet_id == outlet_id)
    if status:
        q = q.filter(StockTransfer.status == status)
    return q.order_by(StockTransfer.occurred_at.desc()).all()


def in_transit_quantity(outlet_id: int, item_name: str) -> Decimal:
    """Quantity sent by outlet_id for item_name that is still PENDING."""
    total = (
        db.session.query(db.func.coalesce(db.func.sum(StockTransfer.quantity), 0))
        .filter(
            StockTransfer.from_outlet_id == outlet_id,
            StockTransfer.item_name == item_name,
            StockTransfer.status == TRANSFER_STATUS_PENDING,
        )
        .scalar()
    )
    return to_quantity(total or 0)
