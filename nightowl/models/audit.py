"""
NightOwl CRM
Audit domain model.

Models:
    - AuditLog: immutable, append-only trail of identity and privileged actions.
"""

import json

from nightowl.models import _utcnow, db, iso

# ── Constants ────────────────────────────────────────────────────────────────

SYSTEM_ACTOR = "system"

AUDIT_ACTIONS = {
    # Identity
    "login",
    "logout",
    "user_created",
    "user_deactivated",
    "developer_added",
    # Leads
    "client_added",
    "client_updated",
    "lead_ingested",
    "project_created",
    # Project lifecycle
    "project_activated",
    "project_delivered",
    "developer_assigned",
    "phase_status_changed",
    # Work items
    "task_created",
    "task_updated",
    "progress_logged",
    "issue_reported",
    "client_issue_reported",
    "issue_updated",
    "client_feedback_submitted",
    "message_sent",
}


class AuditLog(db.Model):
    """
    One row per action. Rows are only ever inserted or evicted (oldest
    first, see AuditTrail); nothing updates them.

    ``id`` is autoincrement so insertion order is chronological order.
    """

    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("idx_audit_actor", "actor_user_id"),
        db.Index("idx_audit_action", "action"),
        db.Index("idx_audit_project", "project_id"),
        db.Index("idx_audit_ts", "timestamp"),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    timestamp = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    # Who
    actor_user_id = db.Column(
        db.String(36), nullable=False, default=SYSTEM_ACTOR,
        comment="users.id or 'system'",
    )
    actor = db.Column(db.String(150), nullable=False, default=SYSTEM_ACTOR, comment="username or 'system'")
    actor_role = db.Column(db.String(20), nullable=False, default=SYSTEM_ACTOR)

    # What
    action = db.Column(db.String(60), nullable=False, comment="login | project_activated | …")
    description = db.Column(db.Text, nullable=False, default="")
    project_id = db.Column(db.String(36), nullable=True)
    diff_json = db.Column(db.Text, default="{}", comment="JSON: structured detail for the action")

    # ── Helpers ──────────────────────────────────────────────────────────

    @property
    def diff(self) -> dict:
        """Deserialise *diff_json* to a Python dict."""
        try:
            return json.loads(self.diff_json or "{}")
        except (json.JSONDecodeError, TypeError):
            return {}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": iso(self.timestamp),
            "user_id": self.actor_user_id,
            "username": self.actor,
            "user_role": self.actor_role,
            "action": self.action,
            "description": self.description,
            "project_id": self.project_id,
            "diff": self.diff,
        }

    def __repr__(self):
        return f"<AuditLog {self.id}: {self.action} by {self.actor}>"


# ── Convenience writer ───────────────────────────────────────────────────────

def write_audit(
    *,
    action: str,
    description: str,
    actor_user_id: str = SYSTEM_ACTOR,
    actor: str = SYSTEM_ACTOR,
    actor_role: str = SYSTEM_ACTOR,
    project_id: str | None = None,
    diff: dict | None = None,
) -> AuditLog:
    """
    Append a single audit row.  Uses ``flush`` so callers keep
    transaction control.

    Returns the (flushed) AuditLog instance.
    """
    log = AuditLog(
        actor_user_id=actor_user_id,
        actor=actor,
        actor_role=actor_role,
        action=action,
        description=description,
        project_id=project_id,
        diff_json=json.dumps(diff or {}, default=str),
    )
    db.session.add(log)
    db.session.flush()
    return log
