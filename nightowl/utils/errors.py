"""Standardised API error responses.

Usage
-----
    from nightowl.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Project not found")
    return api_error(E.VALIDATION_REQUIRED, "username is required")

``register_error_handlers(app)`` maps the core exception hierarchy onto the
same JSON body so services can simply raise.
"""

from __future__ import annotations

import logging

from flask import jsonify, request

from nightowl.core.exceptions import (
    ActivationFailed,
    AuthenticationRequired,
    ConflictError,
    DuplicateUsername,
    Forbidden,
    InvalidCredentials,
    InvalidTransition,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants (``ERR_`` prefix)."""

    # Validation – HTTP 400 / 422
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"
    VALIDATION_RULE = "ERR_VALIDATION_RULE"

    # Auth – HTTP 401 / 403
    INVALID_CREDENTIALS = "ERR_INVALID_CREDENTIALS"
    AUTH_REQUIRED = "ERR_AUTH_REQUIRED"
    FORBIDDEN = "ERR_FORBIDDEN"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict / state – HTTP 409
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"
    DUPLICATE_USERNAME = "ERR_DUPLICATE_USERNAME"
    INVALID_TRANSITION = "ERR_INVALID_TRANSITION"
    ACTIVATION_FAILED = "ERR_ACTIVATION_FAILED"

    # Server – HTTP 500
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.VALIDATION_RULE: 422,
    E.INVALID_CREDENTIALS: 401,
    E.AUTH_REQUIRED: 401,
    E.FORBIDDEN: 403,
    E.NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
    E.DUPLICATE_USERNAME: 409,
    E.INVALID_TRANSITION: 409,
    E.ACTIVATION_FAILED: 409,
    E.INTERNAL: 500,
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for developers / UI.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload.

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """

    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status


def register_error_handlers(app) -> None:
    """Install one handler per core exception type on the Flask app."""

    @app.errorhandler(InvalidCredentials)
    def _invalid_credentials(error):
        return api_error(E.INVALID_CREDENTIALS, str(error))

    @app.errorhandler(AuthenticationRequired)
    def _auth_required(error):
        return api_error(E.AUTH_REQUIRED, str(error))

    @app.errorhandler(Forbidden)
    def _forbidden(error):
        logger.warning("Forbidden %s %s: %s", request.method, request.path, error)
        return api_error(E.FORBIDDEN, str(error))

    @app.errorhandler(NotFoundError)
    def _not_found(error):
        return api_error(E.NOT_FOUND, str(error))

    @app.errorhandler(DuplicateUsername)
    def _duplicate_username(error):
        return api_error(E.DUPLICATE_USERNAME, str(error))

    @app.errorhandler(ConflictError)
    def _conflict(error):
        return api_error(E.CONFLICT_DUPLICATE, str(error))

    @app.errorhandler(InvalidTransition)
    def _invalid_transition(error):
        return api_error(E.INVALID_TRANSITION, str(error), details=error.details)

    @app.errorhandler(ValidationError)
    def _validation(error):
        return api_error(E.VALIDATION_RULE, str(error), details=error.details)

    @app.errorhandler(ActivationFailed)
    def _activation_failed(error):
        return api_error(E.ACTIVATION_FAILED, str(error), details={"reason": error.reason})
