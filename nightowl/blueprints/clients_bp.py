"""
Clients (leads) blueprint.

Endpoints:
    GET   /api/v1/clients                        — leads (owner), ?status= ?source=
    POST  /api/v1/clients                        — owner adds a lead by hand
    PATCH /api/v1/clients/<client_id>            — validity / active toggles
    POST  /api/v1/clients/<client_id>/projects   — open a pending project
    POST  /api/v1/intake/leads                   — inbound webhook (X-Intake-Token)
"""

import hmac
import logging

from flask import Blueprint, current_app, jsonify, request

from nightowl.core.container import get_core
from nightowl.utils.errors import E, api_error
from nightowl.utils.helpers import json_body

logger = logging.getLogger(__name__)

clients_bp = Blueprint("clients", __name__, url_prefix="/api/v1")


@clients_bp.route("/clients", methods=["GET"])
def list_clients():
    clients = get_core().views.clients(
        status=request.args.get("status"),
        source=request.args.get("source"),
    )
    return jsonify({"items": [c.to_dict() for c in clients], "total": len(clients)})


@clients_bp.route("/clients", methods=["POST"])
def add_client():
    data = json_body()
    client = get_core().lifecycle.add_client(data)
    return jsonify(client.to_dict()), 201


@clients_bp.route("/clients/<client_id>", methods=["PATCH"])
def update_client(client_id):
    """Body: { "status"?: "valid"|"spam", "is_active"?: bool }"""
    data = json_body()
    if "status" not in data and "is_active" not in data:
        return api_error(E.VALIDATION_REQUIRED, "Nothing to update: send status and/or is_active")
    client = get_core().lifecycle.update_client_status(
        client_id, status=data.get("status"), is_active=data.get("is_active"),
    )
    return jsonify(client.to_dict()), 200


@clients_bp.route("/clients/<client_id>/projects", methods=["POST"])
def create_project(client_id):
    project = get_core().lifecycle.create_project_for_client(client_id)
    return jsonify(project.to_dict()), 201


# ── Inbound intake webhook ───────────────────────────────────────────────────

@clients_bp.route("/intake/leads", methods=["POST"])
def intake_lead():
    expected = current_app.config.get("INTAKE_TOKEN") or ""
    if not expected:
        return api_error(E.FORBIDDEN, "Lead intake is disabled", status=503)
    supplied = request.headers.get("X-Intake-Token", "")
    if not hmac.compare_digest(supplied.encode(), expected.encode()):
        logger.warning("Rejected intake call from %s: bad token", request.remote_addr)
        return api_error(E.AUTH_REQUIRED, "Invalid intake token")

    data = json_body()
    client = get_core().lifecycle.ingest_inbound_lead(data)
    return jsonify(client.to_dict()), 201
