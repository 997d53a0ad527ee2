"""
Owner dashboard blueprint.

Endpoints:
    GET /api/v1/dashboard/stats        — lead / project / earnings counters
    GET /api/v1/dashboard/consistency  — projects whose client portal link is broken
"""

from flask import Blueprint, jsonify

from nightowl.core.container import get_core

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/v1/dashboard")


@dashboard_bp.route("/stats", methods=["GET"])
def stats():
    return jsonify(get_core().views.owner_stats())


@dashboard_bp.route("/consistency", methods=["GET"])
def consistency():
    core = get_core()
    faults = core.views.client_link_faults()
    return jsonify({
        "client_link_faults": faults,
        "audit_failed_writes": core.audit.failed_writes,
    })
