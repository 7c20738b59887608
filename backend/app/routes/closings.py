# Overview: Flask API routes for shift closing; parses input and returns JSON responses.

# backend/app/routes/closings.py
"""
Shift closing API routes

- GET  /api/closings/summary     live figures for the caller's shift (?actual_cash= previews approval)
- POST /api/closings             close the shift
- GET  /api/closings/today       the caller's closing for today at this outlet, if any
- GET  /api/closings             closings at the selected outlet (?date=YYYY-MM-DD) (OWNER/MANAGER)

An early close by a cashier, or a non-zero discrepancy, needs an approver.
A cashier passes approver_username / approver_password in the close request;
owners and managers approve their own closing.
"""

from datetime import date

from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import CoreError, InvalidStateError
from ..models.staff import ROLE_OWNER, ROLE_MANAGER
from ..services import closing_service, event_store, sync_service
from ..services.concurrency import action_guard, commit_with_retry
from ..decorators import require_auth, require_role
from app.time_utils import utcnow


closings_bp = Blueprint("closings", __name__, url_prefix="/api/closings")


@closings_bp.get("/summary")
@require_auth
def summary_route():
    try:
        now = utcnow()
        summary = closing_service.compute_summary(g.caller, now)
        body = {"summary": summary.to_dict()}

        actual_cash = request.args.get("actual_cash", type=int)
        if actual_cash is not None:
            reasons = closing_service.approval_reasons(g.caller, summary, actual_cash, now)
            body["preview"] = {
                "actual_cash": actual_cash,
                "discrepancy": summary.discrepancy(actual_cash),
                "approval_reasons": reasons,
                "requires_approval": bool(reasons) and not g.caller.is_approver,
            }
        return jsonify(body), 200

    except CoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to compute shift summary")
        return jsonify({"error": "Failed to compute shift summary"}), 500


@closings_bp.post("")
@require_auth
def close_shift_route():
    """
    Close the caller's shift.

    Request body:
    {
        "actual_cash": 150000,
        "notes": "",                        // optional
        "approver_username": "manager",     // when approval is needed
        "approver_password": "..."
    }

    Returns:
        201: Closing recorded
        403: APPROVAL_REQUIRED with approval_reasons, or approver rejected
        409: Shift already closed for today
    """
    try:
        data = request.get_json() or {}
        with action_guard.hold("closing", g.caller.staff_id):
            closing = closing_service.close_shift(
                g.caller,
                data["actual_cash"],
                notes=data.get("notes"),
                approver_username=data.get("approver_username"),
                approver_password=data.get("approver_password"),
            )
            commit_with_retry()
        sync_service.schedule_dispatch()
        return jsonify({"closing": closing.to_dict()}), 201

    except KeyError as e:
        db.session.rollback()
        return jsonify({"error": f"Missing required field: {e}"}), 400
    except IntegrityError:
        # Another request closed the same shift first
        db.session.rollback()
        err = InvalidStateError("Shift already closed for today")
        return jsonify(err.to_dict()), err.http_status
    except CoreError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except ValueError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to close shift")
        return jsonify({"error": "Failed to close shift"}), 500


@closings_bp.get("/today")
@require_auth
def today_route():
    closing = closing_service.closing_for_day(g.caller.staff_id, g.outlet_id)
    return jsonify({
        "closed": closing is not None,
        "closing": closing.to_dict() if closing else None,
    }), 200


@closings_bp.get("")
@require_auth
@require_role(ROLE_OWNER, ROLE_MANAGER)
def list_closings_route():
    try:
        raw = request.args.get("date")
        business_date = date.fromisoformat(raw) if raw else None
    except ValueError:
        return jsonify({"error": "date must be YYYY-MM-DD"}), 400

    closings = event_store.list_daily_closings(outlet_id=g.outlet_id, business_date=business_date)
    return jsonify({"closings": [c.to_dict() for c in closings]}), 200
