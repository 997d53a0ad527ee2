"""
Health check blueprint.

Endpoints:
    GET /api/v1/health/ready  — simple 200 for load balancers
    GET /api/v1/health/live   — dependency status (database, owner account, audit writes)
"""

import logging
import time

from flask import Blueprint, current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError

from nightowl.models import db
from nightowl.models.auth import User

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/v1/health")


@health_bp.route("/ready", methods=["GET"])
def ready():
    """Simple readiness probe — always 200 if app is running."""
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    """Detailed liveness check with dependency status."""
    checks = {}
    overall = True

    # ── Database ─────────────────────────────────────────────────────
    try:
        t0 = time.perf_counter()
        db.session.execute(db.text("SELECT 1"))
        db_ms = (time.perf_counter() - t0) * 1000
        checks["database"] = {"status": "ok", "latency_ms": round(db_ms, 1)}
    except SQLAlchemyError as exc:
        db.session.rollback()
        checks["database"] = {"status": "error", "detail": str(exc)}
        overall = False
        logger.error("Health check — database failed: %s", exc)

    # ── Owner account ────────────────────────────────────────────────
    if overall:
        has_owner = db.session.query(
            User.query.filter_by(role="owner", is_active=True).exists()
        ).scalar()
        checks["owner"] = {"status": "ok" if has_owner else "missing"}
        overall = overall and bool(has_owner)

    # ── Audit trail ──────────────────────────────────────────────────
    core = current_app.extensions.get("nightowl")
    failed = core.audit.failed_writes if core else 0
    checks["audit"] = {"status": "ok" if failed == 0 else "degraded", "failed_writes": failed}

    status_code = 200 if overall else 503
    return jsonify({
        "status": "ok" if overall else "degraded",
        "checks": checks,
    }), status_code
