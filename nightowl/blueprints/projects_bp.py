"""
Projects blueprint — lifecycle transitions and phase management.

Endpoints:
    GET   /api/v1/projects                                       — visible projects, ?status=
    GET   /api/v1/projects/<project_id>                          — one project
    POST  /api/v1/projects/<project_id>/activate                 — pending → active
    POST  /api/v1/projects/<project_id>/deliver                  — active → delivered
    POST  /api/v1/projects/<project_id>/phases/<phase_id>/developers  — assign developer
    PATCH /api/v1/projects/<project_id>/phases/<phase_id>        — advance phase status
"""

from flask import Blueprint, jsonify, request

from nightowl.core.container import get_core
from nightowl.utils.errors import E, api_error
from nightowl.utils.helpers import json_body

projects_bp = Blueprint("projects", __name__, url_prefix="/api/v1/projects")


@projects_bp.route("", methods=["GET"])
def list_projects():
    projects = get_core().views.projects(status=request.args.get("status"))
    return jsonify({"items": [p.to_dict() for p in projects], "total": len(projects)})


@projects_bp.route("/<project_id>", methods=["GET"])
def get_project(project_id):
    return jsonify(get_core().views.project(project_id).to_dict())


@projects_bp.route("/<project_id>/activate", methods=["POST"])
def activate_project(project_id):
    """
    Body: {
        "manager_id": "...",
        "earnings": 5000,
        "client_credentials": {"username", "password", "email"?, "name"?}
    }
    """
    data = json_body()
    if not data.get("manager_id"):
        return api_error(E.VALIDATION_REQUIRED, "manager_id is required")
    project = get_core().lifecycle.activate_project(
        project_id,
        data["manager_id"],
        data.get("earnings"),
        data.get("client_credentials") or {},
    )
    return jsonify(project.to_dict()), 200


@projects_bp.route("/<project_id>/deliver", methods=["POST"])
def deliver_project(project_id):
    project = get_core().lifecycle.deliver_project(project_id)
    return jsonify(project.to_dict()), 200


@projects_bp.route("/<project_id>/phases/<phase_id>/developers", methods=["POST"])
def assign_developer(project_id, phase_id):
    """Body: { "developer_id": "..." }"""
    data = json_body()
    developer_id = data.get("developer_id")
    if not developer_id:
        return api_error(E.VALIDATION_REQUIRED, "developer_id is required")
    project = get_core().lifecycle.assign_developer_to_phase(project_id, phase_id, developer_id)
    return jsonify(project.to_dict()), 200


@projects_bp.route("/<project_id>/phases/<phase_id>", methods=["PATCH"])
def advance_phase(project_id, phase_id):
    """Body: { "status": "in_progress" | "completed" }"""
    data = json_body()
    status = data.get("status")
    if not status:
        return api_error(E.VALIDATION_REQUIRED, "status is required")
    project = get_core().lifecycle.advance_phase_status(project_id, phase_id, status)
    return jsonify(project.to_dict()), 200
