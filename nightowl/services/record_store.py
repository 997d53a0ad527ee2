"""
Record Store — ordered, collection-level access to persisted records.

Each entity kind is one addressable collection backed by one table. The
store offers two ways in:

  * record level, for the services: ``get`` / ``find`` / ``add`` / ``query``
    inside ``transaction(*kinds)``;
  * collection level, for import/export and tooling: ``get_records(kind)``
    returns the whole collection as an ordered list of plain dicts and
    ``save_records(kind, records)`` replaces it in full.

Collection writes are serialized per kind with a re-entrant lock, so two
writers never interleave a read-modify-write on the same collection inside
one process. ``transaction`` always takes its locks in sorted order.

Usage:
    store = RecordStore()
    with store.transaction("projects", "users"):
        project = store.get("projects", project_id)
        ...
    records = store.get_records("projects")
    store.save_records("projects", records)
"""

import logging
import threading
from contextlib import contextmanager

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from nightowl.core.exceptions import NotFoundError, ValidationError
from nightowl.models import db
from nightowl.models.audit import AuditLog
from nightowl.models.auth import User
from nightowl.models.client import Client
from nightowl.models.project import Project
from nightowl.models.team import Developer
from nightowl.models.work import Feedback, Issue, Message, ProgressLog, Task

logger = logging.getLogger(__name__)

COLLECTIONS = {
    "users": User,
    "clients": Client,
    "projects": Project,
    "developers": Developer,
    "tasks": Task,
    "progress_logs": ProgressLog,
    "issues": Issue,
    "feedback": Feedback,
    "messages": Message,
    "audit_log": AuditLog,
}

_RESOURCE_NAMES = {
    "users": "User",
    "clients": "Client",
    "projects": "Project",
    "developers": "Developer",
    "tasks": "Task",
    "progress_logs": "ProgressLog",
    "issues": "Issue",
    "feedback": "Feedback",
    "messages": "Message",
    "audit_log": "AuditEntry",
}

# Entries are appended through AuditTrail only; never replaced wholesale.
APPEND_ONLY = frozenset({"audit_log"})


class RecordStore:
    """Durable key → ordered record collection storage over SQLAlchemy."""

    def __init__(self):
        self._locks = {kind: threading.RLock() for kind in COLLECTIONS}
        self._local = threading.local()

    # ── Lookup ───────────────────────────────────────────────────────────

    @staticmethod
    def model(kind: str):
        try:
            return COLLECTIONS[kind]
        except KeyError:
            raise ValueError(f"Unknown collection: {kind}") from None

    def query(self, kind: str):
        """Query over a collection in collection order."""
        model = self.model(kind)
        if model is AuditLog:
            return model.query.order_by(AuditLog.id)
        return model.query.order_by(model.seq, model.id)

    def find(self, kind: str, record_id):
        if record_id is None:
            return None
        return db.session.get(self.model(kind), record_id)

    def get(self, kind: str, record_id):
        obj = self.find(kind, record_id)
        if obj is None:
            raise NotFoundError(resource=_RESOURCE_NAMES[kind], resource_id=record_id)
        return obj

    def count(self, kind: str) -> int:
        return self.model(kind).query.count()

    # ── Writes ───────────────────────────────────────────────────────────

    def add(self, kind: str, obj):
        """Append ``obj`` at the end of its collection (flush, no commit)."""
        model = self.model(kind)
        if model is not AuditLog:
            current = db.session.query(func.max(model.seq)).scalar()
            obj.seq = 0 if current is None else current + 1
        db.session.add(obj)
        db.session.flush()
        return obj

    @contextmanager
    def transaction(self, *kinds: str):
        """Single-writer critical section over ``kinds``.

        Commits when the outermost block exits cleanly, rolls back and
        re-raises on any exception. Nested blocks join the outer one.
        """
        for kind in kinds:
            self.model(kind)
        locks = [self._locks[k] for k in sorted(set(kinds))]
        for lock in locks:
            lock.acquire()
        depth = getattr(self._local, "depth", 0)
        self._local.depth = depth + 1
        try:
            yield self
            if depth == 0:
                db.session.commit()
        except Exception:
            if depth == 0:
                db.session.rollback()
            raise
        finally:
            self._local.depth = depth
            for lock in reversed(locks):
                lock.release()

    # ── Collection level ─────────────────────────────────────────────────

    def get_records(self, kind: str) -> list[dict]:
        """Whole collection as plain dicts, in collection order."""
        self.model(kind)
        with self._locks[kind]:
            rows = self.query(kind).all()
            if kind == "users":
                return [u.to_dict(include_secret=True) for u in rows]
            return [row.to_dict() for row in rows]

    def save_records(self, kind: str, records: list[dict]) -> None:
        """Replace the whole collection with ``records`` (order preserved).

        Ids present in the store but absent from ``records`` are deleted;
        listed ids are inserted or overwritten; ``seq`` follows list order.
        """
        if kind in APPEND_ONLY:
            raise ValidationError(f"Collection '{kind}' is append-only")
        model = self.model(kind)

        seen: set[str] = set()
        for data in records:
            record_id = data.get("id")
            if not record_id:
                raise ValidationError(f"Every {kind} record needs an id")
            if record_id in seen:
                raise ValidationError(f"Duplicate id in {kind}: {record_id}", details={"id": record_id})
            seen.add(record_id)

        try:
            with self.transaction(kind):
                existing = {obj.id: obj for obj in model.query.all()}
                for position, data in enumerate(records):
                    obj = existing.get(data["id"])
                    if obj is None:
                        obj = model(id=data["id"])
                        db.session.add(obj)
                    obj.apply_record(data)
                    obj.seq = position
                for record_id, obj in existing.items():
                    if record_id not in seen:
                        db.session.delete(obj)
        except (KeyError, TypeError, ValueError) as exc:
            raise ValidationError(f"Malformed {kind} record: {exc}") from exc
        except IntegrityError as exc:
            logger.warning("Replace of %s rejected by the database: %s", kind, exc.orig)
            raise ValidationError(f"Replacing {kind} would break references to other records") from exc

        logger.info("Collection %s replaced (%d records)", kind, len(records))
