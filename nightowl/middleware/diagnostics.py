"""
Startup diagnostics — runs once when the Flask app starts.

Checks the database, the schema and the bootstrap owner, and logs a
summary banner.
"""

import logging
import sys

from flask import Flask
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import SQLAlchemyError

from nightowl.models import db
from nightowl.models.auth import User

logger = logging.getLogger(__name__)


def run_startup_diagnostics(app: Flask):
    """Run diagnostic checks during app startup (inside app context)."""
    if app.config.get("TESTING"):
        return  # skip during tests for speed

    issues: list[str] = []

    with app.app_context():
        py = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"

        # ── Database connectivity ────────────────────────────────────
        db_status = "ok"
        db_uri = str(app.config.get("SQLALCHEMY_DATABASE_URI", ""))
        db_type = "PostgreSQL" if "postgresql" in db_uri else "SQLite" if "sqlite" in db_uri else "unknown"
        try:
            db.session.execute(db.text("SELECT 1"))
        except SQLAlchemyError as exc:
            db_status = "FAILED"
            issues.append(f"Database unreachable: {exc}")

        # ── Table count ──────────────────────────────────────────────
        try:
            table_count = len(sa_inspect(db.engine).get_table_names())
            if table_count == 0:
                issues.append("No tables found — run 'flask db upgrade'")
        except SQLAlchemyError:
            table_count = "?"

        # ── Owner bootstrap ──────────────────────────────────────────
        try:
            owner = User.query.filter_by(role="owner", is_active=True).first()
            owner_status = owner.username if owner else "MISSING"
            if owner is None:
                issues.append("No active owner account — nobody can administer the CRM")
        except SQLAlchemyError:
            owner_status = "check failed"

        # ── Rate-limit storage / intake webhook ──────────────────────
        redis_url = app.config.get("REDIS_URL", "")
        limiter_store = "redis" if redis_url.startswith("redis") else "memory"
        intake = "enabled" if app.config.get("INTAKE_TOKEN") else "DISABLED (no INTAKE_TOKEN)"

        banner = f"""
╔══════════════════════════════════════════════════════════════╗
║  NightOwl CRM — Startup Diagnostics                         ║
╠══════════════════════════════════════════════════════════════╣
║  Python      : {py:<46s}║
║  Debug       : {str(app.debug):<46s}║
║  Database    : {f'{db_type} ({db_status})':<46s}║
║  Tables      : {str(table_count):<46s}║
║  Owner       : {owner_status:<46s}║
║  Rate limits : {limiter_store:<46s}║
║  Intake hook : {intake:<46s}║
║  Audit cap   : {str(app.config.get('AUDIT_LOG_MAX_ENTRIES')):<46s}║
╚══════════════════════════════════════════════════════════════╝"""
        logger.info(banner)

        if issues:
            logger.warning("Startup issues detected:")
            for issue in issues:
                logger.warning("  ⚠ %s", issue)
        else:
            logger.info("✅ All startup checks passed")
