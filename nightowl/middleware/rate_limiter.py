"""
Rate limiting configuration.

Applies per-blueprint and per-endpoint limits using Flask-Limiter. The
Limiter instance is created in nightowl/__init__.py with no default
limits; this module decides what is limited and how hard.

Usage:
    from nightowl.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

LOGIN_LIMIT = "20/minute"
INTAKE_LIMIT = "30/minute"
WRITE_LIMIT = "120/minute"


def init_rate_limits(app, limiter):
    """
    Apply rate limits (per remote IP).

        - POST /auth/login:   20/minute  (credential guessing)
        - POST /intake/leads: 30/minute  (public webhook)
        - CRM blueprints:     120/minute
        - Health checks:      exempt

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING") or not app.config.get("RATELIMIT_ENABLED", True):
        app.logger.info("Rate limiter disabled")
        return

    login_view = app.view_functions.get("auth.login")
    if login_view is not None:
        app.view_functions["auth.login"] = limiter.limit(LOGIN_LIMIT)(login_view)

    intake_view = app.view_functions.get("clients.intake_lead")
    if intake_view is not None:
        app.view_functions["clients.intake_lead"] = limiter.limit(INTAKE_LIMIT)(intake_view)

    for bp_name in ("users", "clients", "projects", "developers", "work", "messages"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(WRITE_LIMIT)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info(
        "Rate limiter configured: login %s, intake %s, CRM %s",
        LOGIN_LIMIT, INTAKE_LIMIT, WRITE_LIMIT,
    )
