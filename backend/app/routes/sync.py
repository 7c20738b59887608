# Overview: Flask API routes for the remote sync outbox.

# backend/app/routes/sync.py
"""
Remote sync API routes

- GET  /api/sync/status          outbox counts and recent failures
- POST /api/sync/dispatch        push PENDING entries now (OWNER)
- POST /api/sync/retry-failed    move FAILED entries back to PENDING and push (OWNER)

Local commits never wait on the remote store. A failed push leaves the
entry FAILED with its error until someone retries it.
"""

from flask import Blueprint, jsonify, current_app

from ..extensions import db
from ..models.staff import ROLE_OWNER
from ..services import sync_service
from ..decorators import require_auth, require_role


sync_bp = Blueprint("sync", __name__, url_prefix="/api/sync")


@sync_bp.get("/status")
@require_auth
def status_route():
    return jsonify({
        "enabled": bool(current_app.config.get("REMOTE_SYNC_URL")),
        "counts": sync_service.status_counts(),
        "failed": [e.to_dict() for e in sync_service.list_failed()],
    }), 200


@sync_bp.post("/dispatch")
@require_auth
@require_role(ROLE_OWNER)
def dispatch_route():
    try:
        result = sync_service.dispatch_pending()
        return jsonify(result), 200
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Sync dispatch failed")
        return jsonify({"error": "Sync dispatch failed"}), 500


@sync_bp.post("/retry-failed")
@require_auth
@require_role(ROLE_OWNER)
def retry_failed_route():
    try:
        requeued = sync_service.retry_failed()
        result = sync_service.dispatch_pending()
        return jsonify({"requeued": requeued, **result}), 200
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Sync retry failed")
        return jsonify({"error": "Sync retry failed"}), 500
