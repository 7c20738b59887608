# Overview: Flask API routes for production operations; parses input and returns JSON responses.

# backend/app/routes/production.py
"""
Production API routes

- POST /api/production                          run a production with explicit components
- GET  /api/production/records                  recent production receipts (?mine=1)
- GET  /api/production/recipes                  recipes usable here (cashiers: cashier-operated only)
- POST /api/production/recipes                  create a recipe (OWNER/MANAGER)
- GET  /api/production/recipes/<id>/scale       scaled components for ?quantity
- POST /api/production/recipes/<id>/execute     scale a recipe and run it

Runs are not idempotent. A second submit from the same staff member while
the first is still in flight is refused with INVALID_STATE.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..extensions import db
from ..errors import CoreError
from ..models.staff import ROLE_OWNER, ROLE_MANAGER
from ..services import production_service, sync_service
from ..services.concurrency import action_guard, commit_with_retry
from ..decorators import require_auth, require_role


production_bp = Blueprint("production", __name__, url_prefix="/api/production")


def _scaled_to_dict(components: list[dict]) -> list[dict]:
    return [{**c, "quantity": str(c["quantity"])} for c in components]


@production_bp.post("")
@require_auth
def execute_production_route():
    """
    Convert components into a result item.

    Request body:
    {
        "result_item_id": 7,
        "result_quantity": "1000",
        "components": [
            {"inventory_item_id": 3, "quantity": "500"},
            {"item_name": "Water", "quantity": "500"}
        ]
    }
    """
    try:
        data = request.get_json() or {}
        with action_guard.hold("production", g.caller.staff_id):
            record = production_service.execute_production(
                g.outlet_id,
                g.caller.staff_id,
                data["result_item_id"],
                data["result_quantity"],
                data["components"],
            )
            commit_with_retry()
        sync_service.schedule_dispatch()
        return jsonify({"production": record.to_dict()}), 201

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
        current_app.logger.exception("Failed to execute production")
        return jsonify({"error": "Failed to execute production"}), 500


@production_bp.get("/records")
@require_auth
def list_records_route():
    staff_id = g.caller.staff_id if request.args.get("mine") in ("1", "true") else None
    limit = request.args.get("limit", default=100, type=int)
    records = production_service.list_production_records(g.outlet_id, staff_id=staff_id, limit=limit)
    return jsonify({"records": [r.to_dict() for r in records]}), 200


@production_bp.get("/recipes")
@require_auth
def list_recipes_route():
    recipes = production_service.list_recipes(g.outlet_id, g.caller.role)
    return jsonify({"recipes": [r.to_dict() for r in recipes]}), 200


@production_bp.post("/recipes")
@require_auth
@require_role(ROLE_OWNER, ROLE_MANAGER)
def create_recipe_route():
    """
    Request body:
    {
        "name": "Sugar Syrup",
        "result_item_id": 7,
        "reference_quantity": "1000",
        "components": [{"inventory_item_id": 3, "quantity": "500"}],
        "outlet_ids": [1, 2],             // optional, empty = every outlet
        "is_cashier_operated": true       // optional
    }
    """
    try:
        data = request.get_json() or {}
        recipe = production_service.create_recipe(
            data["name"],
            data["result_item_id"],
            data["reference_quantity"],
            data["components"],
            outlet_ids=data.get("outlet_ids"),
            is_cashier_operated=data.get("is_cashier_operated", False),
        )
        commit_with_retry()
        return jsonify({"recipe": recipe.to_dict()}), 201

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
        current_app.logger.exception("Failed to create recipe")
        return jsonify({"error": "Failed to create recipe"}), 500


@production_bp.get("/recipes/<int:recipe_id>/scale")
@require_auth
def scale_recipe_route(recipe_id: int):
    try:
        recipe = production_service.get_recipe(recipe_id)
        components = production_service.scale_recipe(recipe, request.args["quantity"])
        return jsonify({
            "recipe_id": recipe.id,
            "result_quantity": request.args["quantity"],
            "components": _scaled_to_dict(components),
        }), 200
    except KeyError:
        return jsonify({"error": "quantity query parameter required"}), 400
    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except ValueError as e:
        return jsonify({"error": str(e)}), 400


@production_bp.post("/recipes/<int:recipe_id>/execute")
@require_auth
def execute_recipe_route(recipe_id: int):
    """Request body: {"result_quantity": "2000"}"""
    try:
        data = request.get_json() or {}
        with action_guard.hold("production", g.caller.staff_id):
            record = production_service.execute_recipe(
                recipe_id,
                g.outlet_id,
                g.caller.staff_id,
                data["result_quantity"],
            )
            commit_with_retry()
        sync_service.schedule_dispatch()
        return jsonify({"production": record.to_dict()}), 201

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
        current_app.logger.exception("Failed to execute recipe %s", recipe_id)
        return jsonify({"error": "Failed to execute production"}), 500
