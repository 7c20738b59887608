# Overview: Stock movement reconstruction; derives historical balances from the event streams.

"""
Stock Movement Reconstructor

WHY: There is no stored movement ledger. InventoryItem.quantity is the
current on-hand amount and the history is recomputed on demand from the
immutable event streams (purchases, sales, production, transfers).

For an item and a window [start, end] (inclusive):
- end_qty   = the item's current quantity (read once, when the snapshot is loaded)
- inbound   = purchases + production results + ACCEPTED transfers in
- outbound  = sold BOM consumption + production components + ACCEPTED transfers out
- start_qty = end_qty - inbound + outbound

so start_qty + inbound - outbound == end_qty holds by construction.

Item matching:
- Sales and production reference items by id, and BOMs may be templated
  against another outlet's row. An event entry counts for an item when the
  event happened in the item's outlet and the entry matches by id OR by name.
- Transfers match by outlet and item name only.

compute_movement and build_stock_ledger are pure: they aggregate an
EventSnapshot that was loaded beforehand and perform no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from ..models import InventoryItem
from . import event_store
from .inventory_service import to_quantity, list_items


ZERO = Decimal("0.000")

TRANSFER_ACCEPTED = "ACCEPTED"
TRANSFER_PENDING = "PENDING"


@dataclass(frozen=True)
class ItemRef:
    id: int
    outlet_id: int
    name: str
    unit: str
    quantity: Decimal

    @classmethod
    def from_model(cls, item: InventoryItem) -> "ItemRef":
        return cls(
            id=item.id,
            outlet_id=item.outlet_id,
            name=item.name,
            unit=item.unit,
            quantity=to_quantity(item.quantity),
        )


@dataclass(frozen=True)
class ItemEntry:
    """One item reference with a quantity (BOM entry or production component)."""
    inventory_item_id: int | None
    item_name: str | None
    quantity: Decimal


@dataclass(frozen=True)
class PurchaseEvent:
    outlet_id: int
    occurred_at: datetime
    item: ItemEntry


@dataclass(frozen=True)
class SaleLineEvent:
    outlet_id: int
    occurred_at: datetime
    quantity: int
    bom: tuple[ItemEntry, ...]


@dataclass(frozen=True)
class ProductionEvent:
    outlet_id: int
    occurred_at: datetime
    result: ItemEntry
    components: tuple[ItemEntry, ...]


@dataclass(frozen=True)
class TransferEvent:
    from_outlet_id: int
    to_outlet_id: int
    item_name: str
    quantity: Decimal
    status: str
    occurred_at: datetime


@dataclass(frozen=True)
class EventSnapshot:
    """Already-loaded event collections the reconstructor aggregates over."""
    purchases: tuple[PurchaseEvent, ...] = ()
    sale_lines: tuple[SaleLineEvent, ...] = ()
    productions: tuple[ProductionEvent, ...] = ()
    transfers: tuple[TransferEvent, ...] = ()
    pending_transfers: tuple[TransferEvent, ...] = ()


@dataclass(frozen=True)
class MovementRow:
    item_id: int
    outlet_id: int
    item_name: str
    unit: str
    start_qty: Decimal
    inbound: Decimal
    outbound: Decimal
    end_qty: Decimal
    transfer_net: Decimal = ZERO
    in_transit: Decimal = ZERO

    @property
    def has_movement(self) -> bool:
        return self.inbound > 0 or self.outbound > 0

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "outlet_id": self.outlet_id,
            "item_name": self.item_name,
            "unit": self.unit,
            "start_qty": str(self.start_qty),
            "inbound": str(self.inbound),
            "outbound": str(self.outbound),
            "end_qty": str(self.end_qty),
            "transfer_net": str(self.transfer_net),
            "in_transit": str(self.in_transit),
        }


def _in_window(ts: datetime, start: datetime | None, end: datetime | None) -> bool:
    if start is not None and ts < start:
        return False
    if end is not None and ts > end:
        return False
    return True


def _matches(item: ItemRef, event_outlet_id: int, entry: ItemEntry) -> bool:
    if event_outlet_id != item.outlet_id:
        return False
    if entry.inventory_item_id is not None and entry.inventory_item_id == item.id:
        return True
    return entry.item_name is not None and entry.item_name == item.name


def compute_movement(
    item: ItemRef,
    window_start: datetime | None,
    window_end: datetime | None,
    snapshot: EventSnapshot,
) -> MovementRow:
    """Movement of one item over [window_start, window_end]."""
    inbound = ZERO
    outbound = ZERO
    transfer_in = ZERO
    transfer_out = ZERO

    for purchase in snapshot.purchases:
        if _in_window(purchase.occurred_at, window_start, window_end) and _matches(item, purchase.outlet_id, purchase.item):
            inbound += purchase.item.quantity

    for production in snapshot.productions:
        if not _in_window(production.occurred_at, window_start, window_end):
            continue
        if _matches(item, production.outlet_id, production.result):
            inbound += production.result.quantity
        for component in production.components:
            if _matches(item, production.outlet_id, component):
                outbound += component.quantity

    for line in snapshot.sale_lines:
        if not _in_window(line.occurred_at, window_start, window_end):
            continue
        for entry in line.bom:
            if _matches(item, line.outlet_id, entry):
                outbound += entry.quantity * line.quantity

    for transfer in snapshot.transfers:
        if transfer.status != TRANSFER_ACCEPTED or transfer.item_name != item.name:
            continue
        if not _in_window(transfer.occurred_at, window_start, window_end):
            continue
        if transfer.to_outlet_id == item.outlet_id:
            transfer_in += transfer.quantity
        if transfer.from_outlet_id == item.outlet_id:
            transfer_out += transfer.quantity

    in_transit = sum(
        (
            t.quantity for t in snapshot.pending_transfers
            if t.status == TRANSFER_PENDING
            and t.from_outlet_id == item.outlet_id
            and t.item_name == item.name
        ),
        ZERO,
    )

    inbound = to_quantity(inbound + transfer_in)
    outbound = to_quantity(outbound + transfer_out)
    end_qty = item.quantity

    return MovementRow(
        item_id=item.id,
        outlet_id=item.outlet_id,
        item_name=item.name,
        unit=item.unit,
        start_qty=end_qty - inbound + outbound,
        inbound=inbound,
        outbound=outbound,
        end_qty=end_qty,
        transfer_net=to_quantity(transfer_in - transfer_out),
        in_transit=to_quantity(in_transit),
    )


def build_stock_ledger(
    items: list[ItemRef],
    window_start: datetime | None,
    window_end: datetime | None,
    snapshot: EventSnapshot,
) -> list[MovementRow]:
    """Rows for every item that moved in the window, in item order."""
    rows = (compute_movement(item, window_start, window_end, snapshot) for item in items)
    return [row for row in rows if row.has_movement]


def _entry(item_id, name, quantity) -> ItemEntry:
    return ItemEntry(inventory_item_id=item_id, item_name=name, quantity=to_quantity(quantity))


def load_event_snapshot(
    outlet_id: int,
    start: datetime | None = None,
    end: datetime | None = None,
    staff_id: int | None = None,
) -> EventSnapshot:
    """
    Read the event streams for an outlet into an EventSnapshot.

    staff_id narrows every stream to that staff member's own events
    (purchases, sales as cashier, production, transfers created or answered).
    """
    purchases = tuple(
        PurchaseEvent(
            outlet_id=p.outlet_id,
            occurred_at=p.occurred_at,
            item=_entry(p.inventory_item_id, p.item_name, p.quantity),
        )
        for p in event_store.list_purchases(outlet_id=outlet_id, staff_id=staff_id, start=start, end=end)
    )

    sale_lines = tuple(
        SaleLineEvent(
            outlet_id=tx.outlet_id,
            occurred_at=tx.occurred_at,
            quantity=line.quantity,
            bom=tuple(
                _entry(b.get("inventory_item_id"), b.get("item_name"), b.get("quantity", 0))
                for b in (line.bom_snapshot or [])
            ),
        )
        for tx in event_store.list_transactions(
            outlet_id=outlet_id, cashier_id=staff_id, start=start, end=end, status="CLOSED"
        )
        for line in tx.lines
    )

    productions = tuple(
        ProductionEvent(
            outlet_id=r.outlet_id,
            occurred_at=r.occurred_at,
            result=_entry(r.result_item_id, r.result_item_name, r.result_quantity),
            components=tuple(_entry(c.inventory_item_id, c.item_name, c.quantity) for c in r.components),
        )
        for r in event_store.list_production_records(outlet_id=outlet_id, staff_id=staff_id, start=start, end=end)
    )

    def _transfer(t) -> TransferEvent:
        return TransferEvent(
            from_outlet_id=t.from_outlet_id,
            to_outlet_id=t.to_outlet_id,
            item_name=t.item_name,
            quantity=to_quantity(t.quantity),
            status=t.status,
            occurred_at=t.occurred_at,
        )

    transfers = tuple(
        _transfer(t)
        for t in event_store.list_stock_transfers(outlet_id=outlet_id, staff_id=staff_id, start=start, end=end)
    )
    pending = tuple(
        _transfer(t)
        for t in event_store.list_stock_transfers(outlet_id=outlet_id, status=TRANSFER_PENDING)
    )

    return EventSnapshot(
        purchases=purchases,
        sale_lines=sale_lines,
        productions=productions,
        transfers=transfers,
        pending_transfers=pending,
    )


def stock_ledger(
    outlet_id: int,
    start: datetime | None = None,
    end: datetime | None = None,
    staff_id: int | None = None,
) -> list[MovementRow]:
    """Load the outlet's items and events, then reconstruct movement rows."""
    items = [ItemRef.from_model(i) for i in list_items(outlet_id)]
    snapshot = load_event_snapshot(outlet_id, start, end, staff_id=staff_id)
    return build_stock_ledger(items, start, end, snapshot)


def item_movement(
    item: InventoryItem,
    start: datetime | None = None,
    end: datetime | None = None,
) -> MovementRow:
    """compute_movement for one stored item, even if it did not move."""
    snapshot = load_event_snapshot(item.outlet_id, start, end)
    return compute_movement(ItemRef.from_model(item), start, end, snapshot)
