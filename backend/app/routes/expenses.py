# Overview: Flask API routes for expenses operations; parses input and returns JSON responses.

# backend/app/routes/expenses.py
"""
Expense API routes

- GET  /api/expenses/types     active expense types
- POST /api/expenses/types     create an expense type (OWNER/MANAGER)
- POST /api/expenses           record a till pay-out
- GET  /api/expenses           expenses at the selected outlet over ?start&end (?mine=1, ?source=)
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..extensions import db
from ..errors import CoreError
from ..models.staff import ROLE_OWNER, ROLE_MANAGER
from ..services import event_store, purchase_service, sync_service
from ..services.concurrency import commit_with_retry
from ..decorators import require_auth, require_role
from app.time_utils import parse_iso_datetime


expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")


@expenses_bp.get("/types")
@require_auth
def list_types_route():
    types = purchase_service.list_expense_types()
    return jsonify({"types": [t.to_dict() for t in types]}), 200


@expenses_bp.post("/types")
@require_auth
@require_role(ROLE_OWNER, ROLE_MANAGER)
def create_type_route():
    try:
        data = request.get_json() or {}
        expense_type = purchase_service.create_expense_type(data["name"])
        commit_with_retry()
        return jsonify({"type": expense_type.to_dict()}), 201

    except KeyError as e:
        db.session.rollback()
        return jsonify({"error": f"Missing required field: {e}"}), 400
    except ValueError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create expense type")
        return jsonify({"error": "Failed to create expense type"}), 500


@expenses_bp.post("")
@require_auth
def record_expense_route():
    """
    Request body:
    {
        "expense_type_id": 3,
        "amount": 15000,
        "description": "Gas refill"     // optional
    }
    """
    try:
        data = request.get_json() or {}
        expense = purchase_service.record_expense(
            g.outlet_id,
            g.caller.staff_id,
            data["expense_type_id"],
            data["amount"],
            data.get("description"),
        )
        commit_with_retry()
        sync_service.schedule_dispatch()
        return jsonify({"expense": expense.to_dict()}), 201

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
        current_app.logger.exception("Failed to record expense")
        return jsonify({"error": "Failed to record expense"}), 500


@expenses_bp.get("")
@require_auth
def list_expenses_route():
    try:
        start = parse_iso_datetime(request.args.get("start"))
        end = parse_iso_datetime(request.args.get("end"))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    staff_id = g.caller.staff_id if request.args.get("mine") in ("1", "true") else None
    expenses = event_store.list_expenses(
        outlet_id=g.outlet_id,
        staff_id=staff_id,
        start=start,
        end=end,
        source=request.args.get("source"),
    )
    return jsonify({"expenses": [e.to_dict() for e in expenses]}), 200
