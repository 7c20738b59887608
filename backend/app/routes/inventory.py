# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

# backend/app/routes/inventory.py
"""
Inventory API routes

All routes act on the outlet selected by X-Outlet-Id.

- GET   /api/inventory/items                 list items (?type=RAW|WIP, ?cashier_operated=1)
- POST  /api/inventory/items                 create an item (OWNER/MANAGER)
- PATCH /api/inventory/items/<id>            edit item metadata (OWNER/MANAGER)
- GET   /api/inventory/items/<id>/movement   one item's movement over ?start&end
- GET   /api/inventory/low-stock             items at or below min_stock
- GET   /api/inventory/ledger                stock ledger over ?start&end
- POST  /api/inventory/purchases             restock paid from the till
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..extensions import db
from ..errors import CoreError
from ..models.staff import ROLE_OWNER, ROLE_MANAGER
from ..services import inventory_service, movement_service, purchase_service, sync_service
from ..services.concurrency import commit_with_retry
from ..decorators import require_auth, require_role
from app.time_utils import parse_iso_datetime


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _window_args():
    """?start and ?end as UTC-naive datetimes. Raises ValueError."""
    return (
        parse_iso_datetime(request.args.get("start")),
        parse_iso_datetime(request.args.get("end")),
    )


@inventory_bp.get("/items")
@require_auth
def list_items_route():
    items = inventory_service.list_items(
        g.outlet_id,
        type=request.args.get("type"),
        cashier_operated_only=request.args.get("cashier_operated") in ("1", "true"),
    )
    return jsonify({"items": [i.to_dict() for i in items]}), 200


@inventory_bp.post("/items")
@require_auth
@require_role(ROLE_OWNER, ROLE_MANAGER)
def create_item_route():
    """
    Create an inventory item in the selected outlet.

    Request body:
    {
        "name": "Syrup",
        "unit": "ml",
        "quantity": 0,                  // optional opening stock
        "min_stock": 500,               // optional
        "cost_per_unit": 0,             // optional, Rupiah
        "type": "RAW",                  // RAW or WIP
        "is_cashier_operated": false,   // optional
        "can_cashier_purchase": false   // optional
    }
    """
    try:
        data = request.get_json() or {}
        item = inventory_service.create_item(
            g.outlet_id,
            data["name"],
            data["unit"],
            quantity=data.get("quantity", 0),
            min_stock=data.get("min_stock", 0),
            cost_per_unit=data.get("cost_per_unit", 0),
            type=data.get("type", inventory_service.ITEM_TYPE_RAW),
            is_cashier_operated=bool(data.get("is_cashier_operated", False)),
            can_cashier_purchase=bool(data.get("can_cashier_purchase", False)),
        )
        commit_with_retry()
        return jsonify({"item": item.to_dict()}), 201

    except KeyError as e:
        db.session.rollback()
        return jsonify({"error": f"Missing required field: {e}"}), 400
    except CoreError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except ValueError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create inventory item")
        return jsonify({"error": "Failed to create item"}), 500


@inventory_bp.patch("/items/<int:item_id>")
@require_auth
@require_role(ROLE_OWNER, ROLE_MANAGER)
def update_item_route(item_id: int):
    """Edit unit, min_stock, cost_per_unit or cashier flags. Quantity is not editable."""
    try:
        data = request.get_json() or {}
        item = inventory_service.update_item_settings(
            g.outlet_id,
            item_id,
            unit=data.get("unit"),
            min_stock=data.get("min_stock"),
            cost_per_unit=data.get("cost_per_unit"),
            is_cashier_operated=data.get("is_cashier_operated"),
            can_cashier_purchase=data.get("can_cashier_purchase"),
        )
        commit_with_retry()
        return jsonify({"item": item.to_dict()}), 200

    except CoreError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except ValueError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update inventory item %s", item_id)
        return jsonify({"error": "Failed to update item"}), 500


@inventory_bp.get("/items/<int:item_id>/movement")
@require_auth
def item_movement_route(item_id: int):
    try:
        start, end = _window_args()
        item = inventory_service.get_item(g.outlet_id, item_id)
        row = movement_service.item_movement(item, start, end)
        return jsonify({"movement": row.to_dict()}), 200
    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except ValueError as e:
        return jsonify({"error": str(e)}), 400


@inventory_bp.get("/low-stock")
@require_auth
def low_stock_route():
    items = inventory_service.list_low_stock(g.outlet_id)
    return jsonify({"items": [i.to_dict() for i in items]}), 200


@inventory_bp.get("/ledger")
@require_auth
def stock_ledger_route():
    """
    Reconstructed stock ledger for the selected outlet.

    Query params:
        start, end: ISO-8601 window bounds (inclusive, optional)
        staff_id: only count events by this staff member (optional)
    """
    try:
        start, end = _window_args()
        staff_id = request.args.get("staff_id", type=int)
        rows = movement_service.stock_ledger(g.outlet_id, start, end, staff_id=staff_id)
        return jsonify({"rows": [r.to_dict() for r in rows]}), 200
    except ValueError as e:
        return jsonify({"error": str(e)}), 400


@inventory_bp.post("/purchases")
@require_auth
def record_purchase_route():
    """
    Record a stock purchase paid from the till.

    Request body:
    {
        "inventory_item_id": 12,
        "quantity": "1000",
        "total_price": 45000
    }

    Returns the purchase and its AUTO_PURCHASE expense.
    """
    try:
        data = request.get_json() or {}
        purchase = purchase_service.record_purchase(
            g.outlet_id,
            g.caller.staff_id,
            g.caller.role,
            data["inventory_item_id"],
            data["quantity"],
            data["total_price"],
        )
        commit_with_retry()
        sync_service.schedule_dispatch()
        return jsonify({
            "purchase": purchase.to_dict(),
            "expense": purchase.expense.to_dict(),
        }), 201

    except KeyError as e:
        db.session.rollback()
        return jsonify({"error": f"Missing required field: {e}"}), 400
    except CoreError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except ValueError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to record purchase")
        return jsonify({"error": "Failed to record purchase"}), 500
