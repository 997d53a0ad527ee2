"""
Work-item models — day-to-day delivery records attached to a project.

Models:
    - Task: developer to-do item (todo → in_progress → done)
    - ProgressLog: immutable timesheet/update entry
    - Issue: bug/blocker/query raised by a developer or the client
    - Feedback: client rating for a phase
    - Message: user-to-user note, optionally about a project
"""

from nightowl.models import RecordMixin, _utcnow, db, iso
from nightowl.utils.helpers import parse_date, parse_datetime

TASK_STATUSES = ("todo", "in_progress", "done")
TASK_PRIORITIES = ("low", "medium", "high")
ISSUE_TYPES = ("bug", "blocker", "query")
ISSUE_STATUSES = ("open", "in_progress", "resolved")


class Task(RecordMixin, db.Model):
    __tablename__ = "tasks"
    __table_args__ = (
        db.Index("idx_tasks_project_status", "project_id", "status"),
        db.Index("idx_tasks_developer", "developer_id"),
    )

    project_id = db.Column(db.String(36), db.ForeignKey("projects.id"), nullable=False)
    developer_id = db.Column(db.String(36), db.ForeignKey("developers.id"), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, default="")
    status = db.Column(db.String(20), nullable=False, default="todo", comment="todo | in_progress | done")
    priority = db.Column(db.String(10), nullable=False, default="medium", comment="low | medium | high")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "developer_id": self.developer_id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }

    def apply_record(self, data: dict) -> None:
        self.project_id = data["project_id"]
        self.developer_id = data["developer_id"]
        self.title = data["title"]
        self.description = data.get("description") or ""
        self.status = data.get("status") or "todo"
        self.priority = data.get("priority") or "medium"
        self.created_at = parse_datetime(data.get("created_at")) or _utcnow()
        self.updated_at = parse_datetime(data.get("updated_at")) or self.created_at


class ProgressLog(RecordMixin, db.Model):
    """Immutable once written; there is no update path."""

    __tablename__ = "progress_logs"
    __table_args__ = (
        db.Index("idx_progress_project", "project_id"),
        db.Index("idx_progress_developer", "developer_id"),
    )

    project_id = db.Column(db.String(36), db.ForeignKey("projects.id"), nullable=False)
    developer_id = db.Column(db.String(36), db.ForeignKey("developers.id"), nullable=False)
    short_update = db.Column(db.Text, nullable=False)
    hours = db.Column(db.Float, nullable=False, default=0.0)
    date = db.Column(db.Date, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "developer_id": self.developer_id,
            "short_update": self.short_update,
            "hours": self.hours,
            "date": iso(self.date),
            "created_at": iso(self.created_at),
        }

    def apply_record(self, data: dict) -> None:
        self.project_id = data["project_id"]
        self.developer_id = data["developer_id"]
        self.short_update = data["short_update"]
        self.hours = float(data.get("hours") or 0)
        self.date = parse_date(data.get("date"))
        self.created_at = parse_datetime(data.get("created_at")) or _utcnow()


class Issue(RecordMixin, db.Model):
    __tablename__ = "issues"
    __table_args__ = (
        db.Index("idx_issues_project_status", "project_id", "status"),
    )

    project_id = db.Column(db.String(36), db.ForeignKey("projects.id"), nullable=False)
    reporter_id = db.Column(
        db.String(36), nullable=False,
        comment="Developer id, or User id for client reporters",
    )
    reporter_role = db.Column(db.String(20), nullable=False, default="developer")
    type = db.Column(db.String(10), nullable=False, default="query", comment="bug | blocker | query")
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, default="")
    status = db.Column(db.String(20), nullable=False, default="open", comment="open | in_progress | resolved")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    resolved_at = db.Column(db.DateTime(timezone=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "reporter_id": self.reporter_id,
            "reporter_role": self.reporter_role,
            "type": self.type,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "created_at": iso(self.created_at),
            "resolved_at": iso(self.resolved_at),
        }

    def apply_record(self, data: dict) -> None:
        self.project_id = data["project_id"]
        self.reporter_id = data["reporter_id"]
        self.reporter_role = data.get("reporter_role") or "developer"
        self.type = data.get("type") or "query"
        self.title = data["title"]
        self.description = data.get("description") or ""
        self.status = data.get("status") or "open"
        self.created_at = parse_datetime(data.get("created_at")) or _utcnow()
        self.resolved_at = parse_datetime(data.get("resolved_at"))


class Feedback(RecordMixin, db.Model):
    __tablename__ = "feedback"

    project_id = db.Column(db.String(36), db.ForeignKey("projects.id"), nullable=False, index=True)
    client_user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False)
    phase_id = db.Column(db.String(36), nullable=False)
    rating = db.Column(db.Integer, nullable=False)
    comments = db.Column(db.Text, default="")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "client_user_id": self.client_user_id,
            "phase_id": self.phase_id,
            "rating": self.rating,
            "comments": self.comments,
            "created_at": iso(self.created_at),
        }

    def apply_record(self, data: dict) -> None:
        self.project_id = data["project_id"]
        self.client_user_id = data["client_user_id"]
        self.phase_id = data["phase_id"]
        self.rating = int(data["rating"])
        self.comments = data.get("comments") or ""
        self.created_at = parse_datetime(data.get("created_at")) or _utcnow()


class Message(RecordMixin, db.Model):
    __tablename__ = "messages"
    __table_args__ = (
        db.Index("idx_messages_to", "to_user_id", "is_read"),
        db.Index("idx_messages_from", "from_user_id"),
    )

    from_user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False)
    to_user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False)
    project_id = db.Column(db.String(36), db.ForeignKey("projects.id"), nullable=True)
    subject = db.Column(db.String(200), nullable=False)
    content = db.Column(db.Text, default="")
    is_read = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "from_user_id": self.from_user_id,
            "to_user_id": self.to_user_id,
            "project_id": self.project_id,
            "subject": self.subject,
            "content": self.content,
            "is_read": self.is_read,
            "created_at": iso(self.created_at),
        }

    def apply_record(self, data: dict) -> None:
        self.from_user_id = data["from_user_id"]
        self.to_user_id = data["to_user_id"]
        self.project_id = data.get("project_id")
        self.subject = data["subject"]
        self.content = data.get("content") or ""
        self.is_read = bool(data.get("is_read", False))
        self.created_at = parse_datetime(data.get("created_at")) or _utcnow()
