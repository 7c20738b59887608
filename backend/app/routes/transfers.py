# Overview: Flask API routes for transfers operations; parses input and returns JSON responses.

# backend/app/routes/transfers.py
"""
Inter-outlet stock transfer API routes

- POST /api/transfers                  send stock from the selected outlet
- POST /api/transfers/<id>/respond     ACCEPTED or REJECTED, by the destination outlet
- GET  /api/transfers/incoming         transfers addressed to the selected outlet (?status=)
- GET  /api/transfers/outgoing         transfers sent from the selected outlet (?status=)

Stock leaves the sender when the transfer is created. It reaches the
receiver on ACCEPTED, or returns to the sender on REJECTED.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..extensions import db
from ..errors import CoreError
from ..services import transfer_service, sync_service
from ..services.concurrency import action_guard, commit_with_retry
from ..decorators import require_auth


transfers_bp = Blueprint("transfers", __name__, url_prefix="/api/transfers")


@transfers_bp.post("")
@require_auth
def initiate_transfer_route():
    """
    Create a PENDING transfer.

    Request body:
    {
        "to_outlet_id": 2,
        "item_name": "Syrup",
        "quantity": "250"
    }

    Returns:
        201: Transfer created, sender already debited
        409: INSUFFICIENT_STOCK or action already in progress
    """
    try:
        data = request.get_json() or {}
        with action_guard.hold("transfer", g.caller.staff_id):
            transfer = transfer_service.initiate_transfer(
                g.outlet_id,
                data["to_outlet_id"],
                data["item_name"],
                data["quantity"],
                g.caller.staff_id,
            )
            commit_with_retry()
        sync_service.schedule_dispatch()
        return jsonify({"transfer": transfer.to_dict()}), 201

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
        current_app.logger.exception("Failed to create transfer")
        return jsonify({"error": "Failed to create transfer"}), 500


@transfers_bp.post("/<int:transfer_id>/respond")
@require_auth
def respond_to_transfer_route(transfer_id: int):
    """Request body: {"response": "ACCEPTED"} or {"response": "REJECTED"}"""
    try:
        data = request.get_json() or {}
        with action_guard.hold("transfer", g.caller.staff_id):
            transfer = transfer_service.respond_to_transfer(
                transfer_id,
                str(data["response"]).upper(),
                g.outlet_id,
                g.caller.staff_id,
            )
            commit_with_retry()
        sync_service.schedule_dispatch()
        return jsonify({"transfer": transfer.to_dict()}), 200

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
        current_app.logger.exception("Failed to respond to transfer %s", transfer_id)
        return jsonify({"error": "Failed to respond to transfer"}), 500


@transfers_bp.get("/incoming")
@require_auth
def list_incoming_route():
    status = request.args.get("status", transfer_service.TRANSFER_STATUS_PENDING)
    transfers = transfer_service.list_incoming(g.outlet_id, status=None if status == "ALL" else status)
    return jsonify({"transfers": [t.to_dict() for t in transfers]}), 200


@transfers_bp.get("/outgoing")
@require_auth
def list_outgoing_route():
    transfers = transfer_service.list_outgoing(g.outlet_id, status=request.args.get("status"))
    return jsonify({"transfers": [t.to_dict() for t in transfers]}), 200
