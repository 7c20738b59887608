# backend/app/routes/system.py
"""
System health endpoint.

Reports database reachability and the outbox backlog so an operator can see
whether the remote durability stage is keeping up.
"""

import time
from flask import Blueprint, current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Outlet, Staff
from ..services import sync_service
from app.time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        outlet_count = db.session.query(Outlet).count()
        staff_count = db.session.query(Staff).count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {"outlets": outlet_count, "staff": staff_count},
        }
    except SQLAlchemyError:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/api/health")
def health():
    database = check_database_health()
    body = {
        "status": database["status"],
        "time": to_utc_z(utcnow()),
        "database": database,
    }
    if database["status"] == "healthy":
        body["sync"] = {
            "enabled": bool(current_app.config.get("REMOTE_SYNC_URL")),
            "outbox": sync_service.status_counts(),
        }
        return jsonify(body), 200
    return jsonify(body), 503
