# Overview: Flask API routes for timekeeping operations; parses input and returns JSON responses.

# backend/app/routes/timekeeping.py
"""
Timekeeping API routes

- POST /api/timekeeping/clock-in     open attendance at the selected outlet
- POST /api/timekeeping/clock-out    close the open attendance
- GET  /api/timekeeping/status       open attendance, if any
"""

from flask import Blueprint, jsonify, current_app, g

from ..extensions import db
from ..errors import CoreError
from ..services import timekeeping_service, sync_service
from ..services.concurrency import commit_with_retry
from ..decorators import require_auth


timekeeping_bp = Blueprint("timekeeping", __name__, url_prefix="/api/timekeeping")


@timekeeping_bp.post("/clock-in")
@require_auth
def clock_in_route():
    try:
        entry = timekeeping_service.clock_in(staff_id=g.caller.staff_id, outlet_id=g.outlet_id)
        commit_with_retry()
        sync_service.schedule_dispatch()
        return jsonify({"attendance": entry.to_dict()}), 201
    except CoreError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to clock in")
        return jsonify({"error": "Failed to clock in"}), 500


@timekeeping_bp.post("/clock-out")
@require_auth
def clock_out_route():
    try:
        entry = timekeeping_service.clock_out(staff_id=g.caller.staff_id)
        commit_with_retry()
        sync_service.schedule_dispatch()
        return jsonify({"attendance": entry.to_dict()}), 200
    except CoreError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to clock out")
        return jsonify({"error": "Failed to clock out"}), 500


@timekeeping_bp.get("/status")
@require_auth
def status_route():
    entry = timekeeping_service.current_attendance(g.caller.staff_id)
    return jsonify({
        "clocked_in": entry is not None,
        "attendance": entry.to_dict() if entry else None,
    }), 200
