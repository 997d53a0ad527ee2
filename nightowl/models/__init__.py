"""
NightOwl CRM
SQLAlchemy handle and shared model helpers.

Every model module imports ``db`` from here; the application factory binds
it with ``db.init_app(app)``.
"""

import uuid
from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


def iso(value):
    """ISO-8601 string for a date/datetime, or None."""
    return value.isoformat() if value else None


class RecordMixin:
    """Columns shared by every record collection.

    ``seq`` is the record's position inside its ordered collection. The
    record store assigns it on insert and renumbers it on a full replace.
    """

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    seq = db.Column(db.Integer, nullable=False, default=0, index=True)
