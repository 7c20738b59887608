from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


# Stock quantities are fractional (grams, litres, portions), three decimals.
Quantity = db.Numeric(14, 3)


def _qty(value) -> str | None:
    return None if value is None else str(value)


class InventoryItem(db.Model):
    """
    Outlet-owned stock item (raw material or semi-finished WIP).

    INVARIANT: quantity is the only persisted stock fact and is always the
    CURRENT on-hand amount. Historical balances are derived from the event
    streams (see movement_service), never stored.

    quantity >= 0 is enforced before every mutation (event_store.update_inventory_item).

    Each outlet owns its own row per item name. Cross-outlet matching
    (transfers, templated BOMs and recipes) therefore goes by name.
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.UniqueConstraint("outlet_id", "name", name="uq_inventory_items_outlet_name"),
        db.Index("ix_inventory_items_outlet_type", "outlet_id", "type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)

    name = db.Column(db.String(120), nullable=False)
    unit = db.Column(db.String(16), nullable=False)
    quantity = db.Column(Quantity, nullable=False, default=0)
    min_stock = db.Column(Quantity, nullable=False, default=0)

    # Rupiah per unit
    cost_per_unit = db.Column(db.Integer, nullable=False, default=0)

    type = db.Column(db.String(8), nullable=False, default="RAW")  # RAW, WIP

    is_cashier_operated = db.Column(db.Boolean, nullable=False, default=False)
    can_cashier_purchase = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    outlet = db.relationship("Outlet", backref=db.backref("inventory_items", lazy=True))

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} name={self.name!r} outlet_id={self.outlet_id} qty={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "outlet_id": self.outlet_id,
            "name": self.name,
            "unit": self.unit,
            "quantity": _qty(self.quantity),
            "min_stock": _qty(self.min_stock),
            "cost_per_unit": self.cost_per_unit,
            "type": self.type,
            "is_cashier_operated": self.is_cashier_operated,
            "can_cashier_purchase": self.can_cashier_purchase,
            "updated_at": to_utc_z(self.updated_at),
        }


class Purchase(db.Model):
    """
    Stock purchase (restock) receipt. Immutable once written.

    Every purchase also produces an Expense with source=AUTO_PURCHASE.
    """
    __tablename__ = "purchases"
    __table_args__ = (
        db.Index("ix_purchases_outlet_occurred", "outlet_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)
    staff_id = db.Column(db.Integer, db.ForeignKey("staff.id"), nullable=False, index=True)
    inventory_item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)

    item_name = db.Column(db.String(120), nullable=False)
    quantity = db.Column(Quantity, nullable=False)
    total_price = db.Column(db.Integer, nullable=False)  # Rupiah

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "outlet_id": self.outlet_id,
            "staff_id": self.staff_id,
            "inventory_item_id": self.inventory_item_id,
            "item_name": self.item_name,
            "quantity": _qty(self.quantity),
            "total_price": self.total_price,
            "occurred_at": to_utc_z(self.occurred_at),
        }


class Product(db.Model):
    """
    Sellable menu product with its bill of materials (BOM).

    BOM lines may reference a canonical ("template") inventory item owned by
    another outlet. Sales resolve them to the selling outlet's row by name.
    """
    __tablename__ = "products"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    category = db.Column(db.String(64), nullable=True)

    price = db.Column(db.Integer, nullable=False)  # Rupiah
    is_available = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    bom_lines = db.relationship(
        "ProductBomLine",
        backref=db.backref("product", lazy=True),
        lazy=True,
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "price": self.price,
            "is_available": self.is_available,
            "bom": [line.to_dict() for line in self.bom_lines],
        }


class ProductBomLine(db.Model):
    __tablename__ = "product_bom_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    inventory_item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False)
    quantity = db.Column(Quantity, nullable=False)  # consumed per unit sold

    inventory_item = db.relationship("InventoryItem")

    def to_dict(self) -> dict:
        return {
            "inventory_item_id": self.inventory_item_id,
            "quantity": _qty(self.quantity),
        }


recipe_outlets = db.Table(
    "recipe_outlets",
    db.Column("recipe_id", db.Integer, db.ForeignKey("recipes.id"), primary_key=True),
    db.Column("outlet_id", db.Integer, db.ForeignKey("outlets.id"), primary_key=True),
)


class Recipe(db.Model):
    """
    Master WIP recipe: converts components into one result item.

    reference_quantity is the batch size the component quantities are written
    for. Executing a different batch size scales every component linearly.
    """
    __tablename__ = "recipes"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    result_item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False)
    reference_quantity = db.Column(Quantity, nullable=False)
    is_cashier_operated = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    result_item = db.relationship("InventoryItem")
    outlets = db.relationship("Outlet", secondary=recipe_outlets, lazy=True)
    components = db.relationship(
        "RecipeComponent",
        backref=db.backref("recipe", lazy=True),
        lazy=True,
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "result_item_id": self.result_item_id,
            "reference_quantity": _qty(self.reference_quantity),
            "is_cashier_operated": self.is_cashier_operated,
            "outlet_ids": sorted(o.id for o in self.outlets),
            "components": [c.to_dict() for c in self.components],
        }


class RecipeComponent(db.Model):
    __tablename__ = "recipe_components"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    recipe_id = db.Column(db.Integer, db.ForeignKey("recipes.id"), nullable=False, index=True)
    inventory_item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False)
    quantity = db.Column(Quantity, nullable=False)

    def to_dict(self) -> dict:
        return {
            "inventory_item_id": self.inventory_item_id,
            "quantity": _qty(self.quantity),
        }


class ProductionRecord(db.Model):
    """
    Immutable receipt of one production (conversion) event.

    Component and result ids are the outlet-local rows that were actually
    debited and credited.
    """
    __tablename__ = "production_records"
    __table_args__ = (
        db.Index("ix_production_outlet_occurred", "outlet_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)
    staff_id = db.Column(db.Integer, db.ForeignKey("staff.id"), nullable=False, index=True)
    recipe_id = db.Column(db.Integer, db.ForeignKey("recipes.id"), nullable=True)

    result_item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False)
    result_item_name = db.Column(db.String(120), nullable=False)
    result_quantity = db.Column(Quantity, nullable=False)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    components = db.relationship(
        "ProductionComponent",
        backref=db.backref("record", lazy=True),
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "outlet_id": self.outlet_id,
            "staff_id": self.staff_id,
            "recipe_id": self.recipe_id,
            "result_item_id": self.result_item_id,
            "result_item_name": self.result_item_name,
            "result_quantity": _qty(self.result_quantity),
            "components": [c.to_dict() for c in self.components],
            "occurred_at": to_utc_z(self.occurred_at),
        }


class ProductionComponent(db.Model):
    __tablename__ = "production_components"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    production_record_id = db.Column(db.Integer, db.ForeignKey("production_records.id"), nullable=False, index=True)
    inventory_item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False)
    item_name = db.Column(db.String(120), nullable=False)
    quantity = db.Column(Quantity, nullable=False)

    def to_dict(self) -> dict:
        return {
            "inventory_item_id": self.inventory_item_id,
            "item_name": self.item_name,
            "quantity": _qty(self.quantity),
        }
