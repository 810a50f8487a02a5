"""
Health check blueprint.

Endpoints:
    GET /api/v1/health        — service name + database status
    GET /api/v1/health/ready  — simple 200 for load balancers
    GET /api/v1/health/live   — database round-trip with latency
"""

import logging
import time

from flask import Blueprint, current_app, jsonify

from app.models import db

logger = logging.getLogger(__name__)

health_bp = Blueprint("health_bp", __name__, url_prefix="/api/v1/health")


def _check_database() -> dict:
    try:
        t0 = time.perf_counter()
        db.session.execute(db.text("SELECT 1"))
        db_ms = (time.perf_counter() - t0) * 1000
        return {"status": "ok", "latency_ms": round(db_ms, 1)}
    except Exception as exc:
        logger.error("Health check — database failed: %s", exc)
        return {"status": "error", "detail": str(exc)}


@health_bp.route("", methods=["GET"])
def health():
    database = _check_database()
    healthy = database["status"] == "ok"
    return jsonify({
        "status": "ok" if healthy else "degraded",
        "app": "governance-checklist-api",
        "database": database["status"],
    }), 200 if healthy else 503


@health_bp.route("/ready", methods=["GET"])
def ready():
    """Simple readiness probe — always 200 if app is running."""
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    """Liveness check with dependency status."""
    checks = {"database": _check_database()}
    overall = checks["database"]["status"] == "ok"
    checks["app"] = {
        "name": "Governance Checklist API",
        "debug": current_app.debug,
        "testing": current_app.testing,
    }
    return jsonify({
        "status": "healthy" if overall else "degraded",
        "checks": checks,
    }), 200 if overall else 503
