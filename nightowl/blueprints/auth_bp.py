"""
Auth Blueprint — session endpoints.

  POST /api/v1/auth/login   — username + secret → opens the session
  POST /api/v1/auth/logout  — closes the session (no-op when none)
  GET  /api/v1/auth/me      — current session user
"""

from flask import Blueprint, jsonify

from nightowl.core.container import get_core
from nightowl.utils.errors import E, api_error
from nightowl.utils.helpers import json_body

auth_bp = Blueprint("auth", __name__, url_prefix="/api/v1/auth")


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/login
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/login", methods=["POST"])
def login():
    """
    Body: { "username": "...", "password": "..." }   ("secret" also accepted)
    """
    data = json_body()
    username = (data.get("username") or "").strip()
    secret = data.get("password") or data.get("secret") or ""

    if not username or not secret:
        return api_error(E.VALIDATION_REQUIRED, "Username and password are required")

    core = get_core()
    user = core.directory.authenticate(username, secret)
    return jsonify({"user": user.to_dict(), "session": core.session.snapshot()}), 200


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/logout
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/logout", methods=["POST"])
def logout():
    get_core().directory.logout()
    return jsonify({"message": "Logged out"}), 200


# ═══════════════════════════════════════════════════════════════
# GET /api/v1/auth/me
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/me", methods=["GET"])
def me():
    core = get_core()
    user = core.directory.require_user()
    body = {"user": user.to_dict(), "session": core.session.snapshot()}
    if user.role == "client":
        project = core.views.client_project()
        body["project_id"] = project.id if project else None
    return jsonify(body), 200
