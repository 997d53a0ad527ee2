"""
NightOwl CRM
Flask Application Factory.

Usage:
    from nightowl import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event
from sqlalchemy.exc import SQLAlchemyError

from nightowl.config import config
from nightowl.core.container import init_core
from nightowl.middleware.diagnostics import run_startup_diagnostics
from nightowl.middleware.logging_config import configure_logging
from nightowl.middleware.rate_limiter import init_rate_limits
from nightowl.middleware.security_headers import init_security_headers
from nightowl.middleware.timing import init_request_timing
from nightowl.models import db
from nightowl.utils.errors import E, api_error, register_error_handlers

logger = logging.getLogger(__name__)


# ── SQLite FK enforcement (global engine event) ─────────────────────────
@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # no global limit — applied per route in rate_limiter
    storage_uri=os.getenv("REDIS_URL") or "memory://",
)


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    # Instantiating runs the production checks for required env vars
    app.config.from_object(config[config_name]())

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    init_security_headers(app)
    init_request_timing(app)
    register_error_handlers(app)

    app.config.setdefault("MAX_CONTENT_LENGTH", 1024 * 1024)  # 1 MB

    # ── Import all models so Alembic can detect them ─────────────────────
    from nightowl.models import audit as _audit_models      # noqa: F401
    from nightowl.models import auth as _auth_models        # noqa: F401
    from nightowl.models import client as _client_models    # noqa: F401
    from nightowl.models import project as _project_models  # noqa: F401
    from nightowl.models import team as _team_models        # noqa: F401
    from nightowl.models import work as _work_models        # noqa: F401

    # ── Core components (record store, session, audit, services) ─────────
    core = init_core(app)

    # ── Tables + owner bootstrap ─────────────────────────────────────────
    if config_name != "testing":
        os.makedirs(app.instance_path, exist_ok=True)
        with app.app_context():
            try:
                db.create_all()
                app.logger.info("db.create_all() completed successfully")
            except SQLAlchemyError as e:
                app.logger.warning("db.create_all() failed: %s", e)
            else:
                core.bootstrap_owner(app.config)
                if app.config.get("SEED_SAMPLE_DATA"):
                    from nightowl.services.sample_data import seed_sample_data
                    seed_sample_data(core)

    # ── Blueprints ───────────────────────────────────────────────────────
    from nightowl.blueprints.audit_bp import audit_bp
    from nightowl.blueprints.auth_bp import auth_bp
    from nightowl.blueprints.clients_bp import clients_bp
    from nightowl.blueprints.dashboard_bp import dashboard_bp
    from nightowl.blueprints.developers_bp import developers_bp
    from nightowl.blueprints.health_bp import health_bp
    from nightowl.blueprints.messages_bp import messages_bp
    from nightowl.blueprints.projects_bp import projects_bp
    from nightowl.blueprints.users_bp import users_bp
    from nightowl.blueprints.work_bp import work_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(clients_bp)
    app.register_blueprint(projects_bp)
    app.register_blueprint(developers_bp)
    app.register_blueprint(work_bp)
    app.register_blueprint(messages_bp)
    app.register_blueprint(audit_bp)
    app.register_blueprint(dashboard_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("seed-sample-data")
    def seed_sample_data_cmd():
        """Add the two demo leads (with pending projects) to an empty CRM."""
        from nightowl.services.sample_data import seed_sample_data
        count = seed_sample_data(core)
        logger.info("Seeded %s sample leads.", count)

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        return api_error(E.NOT_FOUND, "Not found", details={"path": request.path})

    @app.errorhandler(405)
    def method_not_allowed(e):
        return api_error(E.VALIDATION_INVALID, "Method not allowed", status=405)

    @app.errorhandler(429)
    def rate_limited(e):
        return api_error(E.VALIDATION_RULE, "Too many requests", status=429,
                         details={"retry_after": str(e.description)})

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        db.session.rollback()
        return api_error(E.INTERNAL, "Internal server error")

    # ── Startup diagnostics ──────────────────────────────────────────────
    run_startup_diagnostics(app)

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
