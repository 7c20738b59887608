# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/app/routes/sales.py
"""
Sales API routes

- GET  /api/sales/products          sellable products
- POST /api/sales/products          create a product with its bill of materials (OWNER/MANAGER)
- POST /api/sales                   record a closed sale
- GET  /api/sales                   sales at the selected outlet over ?start&end (?mine=1)
- POST /api/sales/<id>/void         void a sale and restore its stock (OWNER/MANAGER)
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..extensions import db
from ..errors import CoreError
from ..models.staff import ROLE_OWNER, ROLE_MANAGER
from ..services import event_store, sales_service, sync_service
from ..services.concurrency import commit_with_retry
from ..decorators import require_auth, require_role
from app.time_utils import parse_iso_datetime


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("/products")
@require_auth
def list_products_route():
    include_unavailable = request.args.get("all") in ("1", "true")
    products = sales_service.list_products(available_only=not include_unavailable)
    return jsonify({"products": [p.to_dict() for p in products]}), 200


@sales_bp.post("/products")
@require_auth
@require_role(ROLE_OWNER, ROLE_MANAGER)
def create_product_route():
    """
    Request body:
    {
        "name": "Es Teh Manis",
        "price": 8000,
        "category": "Minuman",                                  // optional
        "bom": [{"inventory_item_id": 7, "quantity": "30"}]     // per unit sold
    }
    """
    try:
        data = request.get_json() or {}
        product = sales_service.create_product(
            data["name"],
            data["price"],
            data.get("bom"),
            category=data.get("category"),
        )
        commit_with_retry()
        return jsonify({"product": product.to_dict()}), 201

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
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Failed to create product"}), 500


@sales_bp.post("")
@require_auth
def record_sale_route():
    """
    Record a sale. Stock is deducted through each product's bill of materials.

    Request body:
    {
        "payment_method": "CASH",       // CASH or QRIS
        "lines": [{"product_id": 1, "quantity": 2}]
    }
    """
    try:
        data = request.get_json() or {}
        tx = sales_service.record_sale(
            g.outlet_id,
            g.caller.staff_id,
            data["lines"],
            str(data["payment_method"]).upper(),
        )
        commit_with_retry()
        sync_service.schedule_dispatch()
        return jsonify({"transaction": tx.to_dict()}), 201

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
        current_app.logger.exception("Failed to record sale")
        return jsonify({"error": "Failed to record sale"}), 500


@sales_bp.get("")
@require_auth
def list_sales_route():
    try:
        start = parse_iso_datetime(request.args.get("start"))
        end = parse_iso_datetime(request.args.get("end"))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    cashier_id = g.caller.staff_id if request.args.get("mine") in ("1", "true") else None
    transactions = event_store.list_transactions(
        outlet_id=g.outlet_id,
        cashier_id=cashier_id,
        start=start,
        end=end,
        status=request.args.get("status"),
    )
    return jsonify({"transactions": [t.to_dict() for t in transactions]}), 200


@sales_bp.post("/<int:transaction_id>/void")
@require_auth
@require_role(ROLE_OWNER, ROLE_MANAGER)
def void_sale_route(transaction_id: int):
    """Request body: {"reason": "Wrong order"}  (optional)"""
    try:
        data = request.get_json(silent=True) or {}
        tx = sales_service.void_sale(
            transaction_id,
            g.outlet_id,
            g.caller.staff_id,
            data.get("reason"),
        )
        commit_with_retry()
        sync_service.schedule_dispatch()
        return jsonify({"transaction": tx.to_dict()}), 200

    except CoreError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except ValueError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to void sale %s", transaction_id)
        return jsonify({"error": "Failed to void sale"}), 500
