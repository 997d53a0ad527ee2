"""
Developers blueprint.

Endpoints:
    GET  /api/v1/developers                           — developers in scope
    POST /api/v1/developers                           — manager adds a developer (+ login)
    GET  /api/v1/developers/<developer_id>/projects   — projects derived from phase assignments
"""

from flask import Blueprint, jsonify, request

from nightowl.core.container import get_core
from nightowl.utils.helpers import json_body

developers_bp = Blueprint("developers", __name__, url_prefix="/api/v1/developers")


@developers_bp.route("", methods=["GET"])
def list_developers():
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    developers = get_core().views.developers(include_inactive=include_inactive)
    return jsonify({"items": [d.to_dict() for d in developers], "total": len(developers)})


@developers_bp.route("", methods=["POST"])
def add_developer():
    """Body: { "name", "username", "password", "specialization"?, "email"? }"""
    data = json_body()
    developer = get_core().directory.add_developer(data)
    return jsonify(developer.to_dict()), 201


@developers_bp.route("/<developer_id>/projects", methods=["GET"])
def developer_projects(developer_id):
    projects = get_core().views.developer_projects(developer_id)
    return jsonify({"items": [p.to_dict() for p in projects], "total": len(projects)})
