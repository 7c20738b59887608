# Overview: Service-layer operations for inventory items; quantities, lookups and low stock.

"""
Inventory Invariants & Time Semantics

Canonical time handling:
- All internal datetimes are UTC-naive (tzinfo=None).
- API accepts ISO-8601 with 'Z' or offsets; inputs are normalized to UTC-naive.
- API responses serialize datetimes as ISO-8601 'Z' strings.

Inventory model:
- InventoryItem.quantity is the current on-hand amount and the only stored
  stock fact. Historical balances come from movement_service.
- Quantities are Decimals rounded half-up to 3 places.
- On-hand quantity may never go negative (event_store.update_inventory_item).

Item resolution:
- Every outlet owns its own row per item name.
- A reference to an item (by id) made in one outlet is resolved to the
  acting outlet's row: the id itself when it belongs to that outlet, else
  the row with the same name in that outlet.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from ..extensions import db
from ..models import InventoryItem, Outlet
from ..errors import NotFoundError


ITEM_TYPE_RAW = "RAW"
ITEM_TYPE_WIP = "WIP"
ITEM_TYPES = (ITEM_TYPE_RAW, ITEM_TYPE_WIP)

QUANTITY_STEP = Decimal("0.001")


def to_quantity(value) -> Decimal:
    """
    Normalize a user-supplied quantity to a 3-place Decimal.

    Accepts int, str, float and Decimal. Floats go through str() so 0.1
    stays 0.100. Raises ValueError for anything non-numeric or non-finite.
    """
    if isinstance(value, bool):
        raise ValueError("invalid quantity")
    try:
        dec = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ValueError(f"invalid quantity: {value!r}") from exc
    if not dec.is_finite():
        raise ValueError(f"invalid quantity: {value!r}")
    return dec.quantize(QUANTITY_STEP, rounding=ROUND_HALF_UP)


def create_item(
    outlet_id: int,
    name: str,
    unit: str,
    *,
    quantity=0,
    min_stock=0,
    cost_per_unit: int = 0,
    type: str = ITEM_TYPE_RAW,
    is_cashier_operated: bool = False,
    can_cashier_purchase: bool = False,
) -> InventoryItem:
    if not name or not name.strip():
        raise ValueError("Item name is required")
    if not unit:
        raise ValueError("Item unit is required")
    type = (type or ITEM_TYPE_RAW).upper()
    if type not in ITEM_TYPES:
        raise ValueError(f"Unknown item type: {type!r}")
    if not db.session.get(Outlet, outlet_id):
        raise NotFoundError(f"Outlet {outlet_id} not found")

    name = name.strip()
    if find_item_by_name(outlet_id, name):
        raise ValueError(f"Item {name!r} already exists in this outlet")

    qty = to_quantity(quantity)
    minimum = to_quantity(min_stock)
    if qty < 0 or minimum < 0:
        raise ValueError("Quantities cannot be negative")
    if int(cost_per_unit) < 0:
        raise ValueError("cost_per_unit cannot be negative")

    item = InventoryItem(
        outlet_id=outlet_id,
        name=name,
        unit=unit,
        quantity=qty,
        min_stock=minimum,
        cost_per_unit=int(cost_per_unit),
        type=type,
        is_cashier_operated=bool(is_cashier_operated),
        can_cashier_purchase=bool(can_cashier_purchase),
    )
    db.session.add(item)
    db.session.flush()
    return item


def find_item_by_name(outlet_id: int, name: str) -> InventoryItem | None:
    return db.session.query(InventoryItem).filter_by(outlet_id=outlet_id, name=name).first()


def get_item(outlet_id: int, item_id: int) -> InventoryItem:
    """Item by id, which must belong to outlet_id."""
    item = db.session.get(InventoryItem, item_id)
    if item is None or item.outlet_id != outlet_id:
        raise NotFoundError(f"Inventory item {item_id} not found in outlet {outlet_id}")
    return item


def resolve_local_item(
    outlet_id: int,
    item_id: int | None = None,
    item_name: str | None = None,
) -> InventoryItem | None:
    """
    Resolve an item reference to the outlet-local row.

    Id match first (only if it belongs to the outlet), else name match in
    the outlet. When only an id is given, the referenced row's name is used
    for the fallback. Returns None if nothing matches.
    """
    if item_id is not None:
        item = db.session.get(InventoryItem, item_id)
        if item is not None:
            if item.outlet_id == outlet_id:
                return item
            if item_name is None:
                item_name = item.name

    if item_name:
        return find_item_by_name(outlet_id, item_name)
    return None


def list_items(
    outlet_id: int,
    *,
    type: str | None = None,
    cashier_operated_only: bool = False,
) -> list[InventoryItem]:
    q = db.session.query(InventoryItem).filter(InventoryItem.outlet_id == outlet_id)
    if type is not None:
        q = q.filter(InventoryItem.type == type.upper())
    if cashier_operated_only:
        q = q.filter(InventoryItem.is_cashier_operated.is_(True))
    return q.order_by(InventoryItem.name.asc()).all()


def list_low_stock(outlet_id: int) -> list[InventoryItem]:
    """Items at or below their min_stock."""
    return (
        db.session.query(InventoryItem)
        .filter(
            InventoryItem.outlet_id == outlet_id,
            InventoryItem.quantity <= InventoryItem.min_stock,
        )
        .order_by(InventoryItem.name.asc())
        .all()
    )


def update_item_settings(
    outlet_id: int,
    item_id: int,
    *,
    unit: str | None = None,
    min_stock=None,
    cost_per_unit: int | None = None,
    is_cashier_operated: bool | None = None,
    can_cashier_purchase: bool | None = None,
) -> InventoryItem:
    """
    Edit item metadata. The on-hand quantity is not editable here; it only
    moves through purchases, sales, production and transfers.
    """
    item = get_item(outlet_id, item_id)
    if unit is not None:
        item.unit = unit
    if min_stock is not None:
        minimum = to_quantity(min_stock)
        if minimum < 0:
            raise ValueError("min_stock cannot be negative")
        item.min_stock = minimum
    if cost_per_unit is not None:
        if int(cost_per_unit) < 0:
            raise ValueError("cost_per_unit cannot be negative")
        item.cost_per_unit = int(cost_per_unit)
    if is_cashier_operated is not None:
        item.is_cashier_operated = bool(is_cashier_operated)
    if can_cashier_purchase is not None:
        item.can_cashier_purchase = bool(can_cashier_purchase)
    db.session.flush()
    return item
