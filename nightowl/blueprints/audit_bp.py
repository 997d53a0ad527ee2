"""
NightOwl CRM
Audit blueprint (owner only).

Endpoints:
    GET  /api/v1/audit   — newest-first audit entries
"""

from flask import Blueprint, jsonify, request

from nightowl.core.container import get_core

audit_bp = Blueprint("audit", __name__, url_prefix="/api/v1")

DEFAULT_LIMIT = 100


@audit_bp.route("/audit", methods=["GET"])
def list_audit_logs():
    """
    Return audit entries, newest first.

    Query params:
        limit       — max entries (default 100; 0 or "all" for every retained entry)
        action      — exact action tag, e.g. project_activated
        project_id  — entries about one project
    """
    raw_limit = request.args.get("limit", str(DEFAULT_LIMIT))
    if raw_limit in ("all", "0"):
        limit = None
    else:
        limit = request.args.get("limit", DEFAULT_LIMIT, type=int)

    audit = get_core().audit
    entries = audit.read(
        limit,
        action=request.args.get("action"),
        project_id=request.args.get("project_id"),
    )
    return jsonify({
        "audit_logs": [log.to_dict() for log in entries],
        "total": len(entries),
        "max_entries": audit.max_entries,
        "failed_writes": audit.failed_writes,
    })
