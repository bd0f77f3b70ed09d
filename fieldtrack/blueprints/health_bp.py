"""
Health check blueprint.

Endpoints:
    GET /api/health  — liveness plus a database round-trip
"""

import logging
import time

from flask import Blueprint, current_app, jsonify

from fieldtrack.models import db

logger = logging.getLogger(__name__)

health_bp = Blueprint("health_bp", __name__, url_prefix="/api")


@health_bp.route("/health", methods=["GET"])
def health():
    """200 when the app and its database answer, 503 otherwise."""
    checks = {}
    overall = True

    try:
        t0 = time.perf_counter()
        db.session.execute(db.text("SELECT 1"))
        db_ms = (time.perf_counter() - t0) * 1000
        checks["database"] = {"status": "ok", "latency_ms": round(db_ms, 1)}
    except Exception as exc:
        db.session.rollback()
        checks["database"] = {"status": "error", "detail": str(exc)}
        overall = False
        logger.error("Health check — database failed: %s", exc)

    checks["app"] = {
        "name": "Field Operations Tracker",
        "debug": current_app.debug,
        "testing": current_app.testing,
    }
    return jsonify({"status": "ok" if overall else "degraded", "checks": checks}), (200 if overall else 503)
