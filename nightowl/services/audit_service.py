"""
Audit Trail — bounded, append-only log of privileged actions.

Entries are attributed to the logged-in user, or to "system" when nothing
acts on behalf of a user (bootstrap, inbound webhook). Retention keeps the
most recent ``max_entries`` rows; older ones are evicted oldest-first in
the same commit as the append.

Audit is best-effort: ``record`` runs after the primary action has been
committed, and a failed write is logged at ERROR and counted in
``failed_writes`` instead of propagating. It never rolls back the action
it describes.

Usage:
    audit.record("project_activated", f"Project {p.id} activated", project_id=p.id)
    entries = audit.read(limit=50)       # newest first, owner only
"""

import logging

from sqlalchemy.exc import SQLAlchemyError

from nightowl.models import db
from nightowl.models.audit import AUDIT_ACTIONS, SYSTEM_ACTOR, AuditLog, write_audit
from nightowl.services import authorization as authz

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 1000


class AuditTrail:
    def __init__(self, store, session_slot, *, max_entries: int = DEFAULT_MAX_ENTRIES):
        self.store = store
        self.session = session_slot
        self.max_entries = max_entries
        self.failed_writes = 0

    def record(
        self,
        action: str,
        description: str,
        *,
        project_id: str | None = None,
        diff: dict | None = None,
        actor=None,
        system: bool = False,
    ) -> AuditLog | None:
        """Append one entry; returns it, or None if the write failed.

        An action outside AUDIT_ACTIONS is a caller bug and raises ValueError
        before anything is written.
        """
        if action not in AUDIT_ACTIONS:
            raise ValueError(f"Unknown audit action: {action!r}")
        if actor is None and not system:
            actor = self.session.current_user()

        try:
            with self.store.transaction("audit_log"):
                log = write_audit(
                    action=action,
                    description=description,
                    actor_user_id=actor.id if actor else SYSTEM_ACTOR,
                    actor=actor.username if actor else SYSTEM_ACTOR,
                    actor_role=actor.role if actor else SYSTEM_ACTOR,
                    project_id=project_id,
                    diff=diff,
                )
                self._evict_overflow()
            return log
        except SQLAlchemyError:
            self.failed_writes += 1
            logger.exception(
                "Audit write failed (action=%s, project=%s): %s",
                action, project_id, description,
            )
            return None

    def _evict_overflow(self) -> None:
        excess = AuditLog.query.count() - self.max_entries
        if excess <= 0:
            return
        oldest = [
            row.id for row in
            db.session.query(AuditLog.id).order_by(AuditLog.id).limit(excess)
        ]
        AuditLog.query.filter(AuditLog.id.in_(oldest)).delete(synchronize_session=False)
        logger.debug("Evicted %d audit entries beyond retention of %d", len(oldest), self.max_entries)

    def read(self, limit: int | None = None, *, action: str | None = None, project_id: str | None = None) -> list[AuditLog]:
        """Entries newest-first. Owner only."""
        authz.require_role(self.session.current_user(), "owner", action="read the audit log")
        q = AuditLog.query
        if action:
            q = q.filter(AuditLog.action == action)
        if project_id:
            q = q.filter(AuditLog.project_id == project_id)
        q = q.order_by(AuditLog.id.desc())
        if limit is not None:
            q = q.limit(max(0, int(limit)))
        return q.all()

    def chronological(self) -> list[AuditLog]:
        """All retained entries, oldest first (storage order)."""
        return AuditLog.query.order_by(AuditLog.id).all()
