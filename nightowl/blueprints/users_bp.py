"""
Users blueprint — account administration.

Endpoints:
    GET  /api/v1/users?role=manager          — users of one role (owner; manager → own developers)
    POST /api/v1/users                       — create manager (owner) / developer (manager)
    POST /api/v1/users/<user_id>/deactivate  — soft-disable an account
"""

from flask import Blueprint, jsonify, request

from nightowl.core.container import get_core
from nightowl.utils.errors import E, api_error
from nightowl.utils.helpers import json_body

users_bp = Blueprint("users", __name__, url_prefix="/api/v1/users")


@users_bp.route("", methods=["GET"])
def list_users():
    role = request.args.get("role")
    if not role:
        return api_error(E.VALIDATION_REQUIRED, "role query parameter is required")
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    users = get_core().directory.list_users_by_role(role, include_inactive=include_inactive)
    return jsonify({"items": [u.to_dict() for u in users], "total": len(users)})


@users_bp.route("", methods=["POST"])
def create_user():
    """
    Body: { "role", "name", "username", "password", "email"?, "specialization"? }
    """
    data = json_body()
    user = get_core().directory.create_user(data)
    return jsonify(user.to_dict()), 201


@users_bp.route("/<user_id>/deactivate", methods=["POST"])
def deactivate_user(user_id):
    user = get_core().directory.deactivate_user(user_id)
    return jsonify(user.to_dict()), 200
