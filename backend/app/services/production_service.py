# Overview: Production executor; converts components into a WIP result item, all or nothing.

"""
Production (conversion) Service

WHY: Kitchen and cashier staff turn raw materials into semi-finished items
(syrups, doughs, sauces). A run debits every component and credits the
result item in one unit of work, or changes nothing.

RULES:
- Components and the result are resolved to the acting outlet's rows:
  by id when the id belongs to the outlet, else by name in the outlet.
- Every component is checked before anything is debited; the first
  under-stocked component is named in INSUFFICIENT_STOCK.
- The call itself is not idempotent. Routes hold the in-flight guard
  (concurrency.action_guard) so a double submit is refused.

Recipes hold component quantities for reference_quantity units of the
result. scale_recipe multiplies each by result_quantity / reference_quantity
and rounds to 3 decimals.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import (
    InventoryItem, ProductionRecord, ProductionComponent, Recipe, RecipeComponent, Outlet,
)
from ..models.staff import ROLE_CASHIER
from ..errors import InsufficientStockError, NotFoundError
from . import event_store, sync_service
from .closing_service import ensure_shift_open
from .concurrency import run_with_retry
from .inventory_service import resolve_local_item, to_quantity
from app.time_utils import utcnow


def _resolve(outlet_id: int, ref: dict, kind: str):
    item = resolve_local_item(
        outlet_id,
        item_id=ref.get("inventory_item_id"),
        item_name=ref.get("item_name"),
    )
    if item is None:
        label = ref.get("item_name") or ref.get("inventory_item_id")
        raise NotFoundError(f"{kind} item {label} not found in outlet {outlet_id}")
    return item


def execute_production(
    outlet_id: int,
    staff_id: int,
    result_item_id: int,
    result_quantity,
    components: list[dict],
    *,
    recipe_id: int | None = None,
    now: datetime | None = None,
) -> ProductionRecord:
    """
    Run one production.

    Args:
        outlet_id: Outlet whose stock is converted
        staff_id: Staff member running it
        result_item_id: Item produced (resolved to the outlet-local row)
        result_quantity: Amount produced, > 0
        components: [{"inventory_item_id": int, "item_name": str?, "quantity": number}]

    Returns:
        ProductionRecord: The immutable receipt

    Raises:
        ValueError: Bad quantities or an empty component list
        NotFoundError: A component or the result has no row in this outlet
        InsufficientStockError: A component is short; nothing was changed
        InvalidStateError: The cashier already closed today
    """
    def _op():
        now_ = now or utcnow()
        ensure_shift_open(staff_id, outlet_id, now_)

        quantity = to_quantity(result_quantity)
        if quantity <= 0:
            raise ValueError("result_quantity must be positive")
        if not components:
            raise ValueError("At least one component is required")

        result_item = _resolve(outlet_id, {"inventory_item_id": result_item_id}, "Result")

        # Aggregate per local row so a repeated component is checked in full.
        required: dict[int, Decimal] = {}
        items = {}
        for ref in components:
            needed = to_quantity(ref.get("quantity"))
            if needed <= 0:
                raise ValueError("Component quantity must be positive")
            item = _resolve(outlet_id, ref, "Component")
            if item.id == result_item.id:
                raise ValueError(f"{item.name} cannot be both component and result")
            items[item.id] = item
            required[item.id] = required.get(item.id, Decimal("0")) + needed

        for item_id, needed in required.items():
            item = items[item_id]
            available = to_quantity(item.quantity)
            if available < needed:
                raise InsufficientStockError(item.name, available, needed)

        for item_id, needed in required.items():
            event_store.update_inventory_item(items[item_id], -needed)
        event_store.update_inventory_item(result_item, quantity)

        record = ProductionRecord(
            outlet_id=outlet_id,
            staff_id=staff_id,
            recipe_id=recipe_id,
            result_item_id=result_item.id,
            result_item_name=result_item.name,
            result_quantity=quantity,
            occurred_at=now_,
        )
        for item_id, needed in required.items():
            record.components.append(ProductionComponent(
                inventory_item_id=item_id,
                item_name=items[item_id].name,
                quantity=needed,
            ))
        db.session.add(record)
        db.session.flush()

        sync_service.enqueue("production", record.id, record.to_dict(), outlet_id=outlet_id)
        current_app.logger.info(
            "Production executed outlet=%s staff=%s result=%s qty=%s components=%s",
            outlet_id, staff_id, result_item.name, quantity, len(required),
        )
        return record

    return run_with_retry(_op)


def scale_recipe(recipe: Recipe, result_quantity) -> list[dict]:
    """Component list for a batch of result_quantity, rounded to 3 places."""
    target = to_quantity(result_quantity)
    if target <= 0:
        raise ValueError("result_quantity must be positive")
    reference = to_quantity(recipe.reference_quantity)
    if reference <= 0:
        raise ValueError("Recipe reference quantity must be positive")

    ratio = target / reference
    scaled = []
    for component in recipe.components:
        item = db.session.get(InventoryItem, component.inventory_item_id)
        scaled.append({
            "inventory_item_id": component.inventory_item_id,
            "item_name": item.name if item is not None else None,
            "quantity": to_quantity(Decimal(component.quantity) * ratio),
        })
    return scaled


def execute_recipe(
    recipe_id: int,
    outlet_id: int,
    staff_id: int,
    result_quantity,
    *,
    now: datetime | None = None,
) -> ProductionRecord:
    """Scale a recipe to result_quantity and execute it in outlet_id."""
    recipe = get_recipe(recipe_id)
    if recipe.outlets and outlet_id not in {o.id for o in recipe.outlets}:
        raise NotFoundError(f"Recipe {recipe_id} is not assigned to outlet {outlet_id}")

    return execute_production(
        outlet_id,
        staff_id,
        recipe.result_item_id,
        result_quantity,
        scale_recipe(recipe, result_quantity),
        recipe_id=recipe.id,
        now=now,
    )


def create_recipe(
    name: str,
    result_item_id: int,
    reference_quantity,
    components: list[dict],
    *,
    outlet_ids: list[int] | None = None,
    is_cashier_operated: bool = False,
) -> Recipe:
    if not name:
        raise ValueError("Recipe name is required")
    if not components:
        raise ValueError("At least one component is required")
    reference = to_quantity(reference_quantity)
    if reference <= 0:
        raise ValueError("reference_quantity must be positive")

    result_item = _catalog_item(result_item_id)
    recipe = Recipe(
        name=name,
        result_item_id=result_item.id,
        reference_quantity=reference,
        is_cashier_operated=bool(is_cashier_operated),
    )
    for ref in components:
        qty = to_quantity(ref.get("quantity"))
        if qty <= 0:
            raise ValueError("Component quantity must be positive")
        item = _catalog_item(ref.get("inventory_item_id"))
        recipe.components.append(RecipeComponent(inventory_item_id=item.id, quantity=qty))

    for outlet_id in outlet_ids or []:
        outlet = db.session.get(Outlet, outlet_id)
        if not outlet:
            raise NotFoundError(f"Outlet {outlet_id} not found")
        recipe.outlets.append(outlet)

    db.session.add(recipe)
    db.session.flush()
    return recipe


def _catalog_item(item_id) -> InventoryItem:
    """Any outlet's item by id; recipes are written against catalog rows."""
    item = db.session.get(InventoryItem, item_id) if item_id is not None else None
    if item is None:
        raise NotFoundError(f"Inventory item {item_id} not found")
    return item


def get_recipe(recipe_id: int) -> Recipe:
    recipe = db.session.get(Recipe, recipe_id)
    if not recipe:
        raise NotFoundError(f"Recipe {recipe_id} not found")
    return recipe


def list_recipes(outlet_id: int, role: str) -> list[Recipe]:
    """Recipes usable in an outlet; cashiers only see cashier-operated ones."""
    recipes = db.session.query(Recipe).order_by(Recipe.name.asc()).all()
    visible = [r for r in recipes if not r.outlets or outlet_id in {o.id for o in r.outlets}]
    if role == ROLE_CASHIER:
        visible = [r for r in visible if r.is_cashier_operated]
    return visible


def list_production_records(outlet_id: int, *, staff_id: int | None = None, limit: int = 100):
    records = event_store.list_production_records(outlet_id=outlet_id, staff_id=staff_id)
    return list(reversed(records))[:limit]
