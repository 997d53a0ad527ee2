"""
Messages blueprint.

Endpoints:
    GET  /api/v1/messages?box=inbox|outbox&unread=true
    POST /api/v1/messages                       — send
    POST /api/v1/messages/<message_id>/read     — recipient marks read
"""

from flask import Blueprint, jsonify, request

from nightowl.core.container import get_core
from nightowl.utils.errors import E, api_error
from nightowl.utils.helpers import json_body

messages_bp = Blueprint("messages", __name__, url_prefix="/api/v1/messages")


@messages_bp.route("", methods=["GET"])
def list_messages():
    messages = get_core().messages.list_messages(
        request.args.get("box", "inbox"),
        unread_only=request.args.get("unread", "false").lower() == "true",
    )
    return jsonify({"items": [m.to_dict() for m in messages], "total": len(messages)})


@messages_bp.route("", methods=["POST"])
def send_message():
    """Body: { "to_user_id", "subject", "content"?, "project_id"? }"""
    data = json_body()
    if not data.get("to_user_id"):
        return api_error(E.VALIDATION_REQUIRED, "to_user_id is required")
    message = get_core().messages.send(
        data["to_user_id"], data.get("subject"), data.get("content", ""), data.get("project_id"),
    )
    return jsonify(message.to_dict()), 201


@messages_bp.route("/<message_id>/read", methods=["POST"])
def mark_read(message_id):
    return jsonify(get_core().messages.mark_read(message_id).to_dict()), 200
