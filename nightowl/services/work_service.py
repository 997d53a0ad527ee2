"""
Work Items — tasks, progress logs, issues and client feedback.

Developers write tasks / progress / issues on projects where they hold a
phase assignment. The client of a project may raise issues and rate its
phases. Managers and the owner read these through ScopedViews; the owner
(or an assigned developer) moves issue and task statuses.
"""

import logging
import math

from nightowl.core.exceptions import Forbidden, InvalidTransition, NotFoundError, ValidationError
from nightowl.models import _utcnow
from nightowl.models.work import (
    ISSUE_STATUSES,
    ISSUE_TYPES,
    TASK_PRIORITIES,
    TASK_STATUSES,
    Feedback,
    Issue,
    ProgressLog,
    Task,
)
from nightowl.services import authorization as authz
from nightowl.utils.helpers import clean_str, parse_date_input

logger = logging.getLogger(__name__)

# Allowed issue status moves; resolved issues may be reopened.
ISSUE_TRANSITIONS = {
    "open": {"in_progress", "resolved"},
    "in_progress": {"open", "resolved"},
    "resolved": {"open"},
}

MIN_RATING, MAX_RATING = 1, 5


class WorkItems:
    def __init__(self, store, session_slot, audit):
        self.store = store
        self.session = session_slot
        self.audit = audit

    def _developer_on(self, project, action: str):
        """The logged-in developer, checked against the project's assignments."""
        user = authz.require_role(self.session.current_user(), "developer", action=action)
        developer = authz.developer_for(user)
        if developer is None or not authz.is_assigned(developer.id, project.id):
            raise Forbidden(
                f"You are not assigned to project {project.id}", role=user.role, action=action,
            )
        return user, developer

    @staticmethod
    def _require_open(project, action: str) -> None:
        if project.status != "active":
            raise InvalidTransition(
                "Project", project.id, project.status, action,
                reason="work can only be recorded on an active project",
            )

    # ── Tasks ────────────────────────────────────────────────────────────

    def create_task(self, project_id: str, fields: dict) -> Task:
        title = clean_str(fields.get("title"))
        if not title:
            raise ValidationError("title is required", details={"title": "required"})
        priority = fields.get("priority") or "medium"
        if priority not in TASK_PRIORITIES:
            raise ValidationError(f"Invalid priority: {priority!r}", details={"priority": priority})

        with self.store.transaction("tasks"):
            project = self.store.get("projects", project_id)
            user, developer = self._developer_on(project, "create_task")
            self._require_open(project, "create task")
            task = self.store.add("tasks", Task(
                project_id=project.id,
                developer_id=developer.id,
                title=title,
                description=clean_str(fields.get("description")) or "",
                priority=priority,
                status="todo",
            ))
        self.audit.record(
            "task_created", f"{user.name} created task '{task.title}'",
            project_id=project.id, diff={"task_id": task.id},
        )
        return task

    def update_task_status(self, task_id: str, new_status: str) -> Task:
        if new_status not in TASK_STATUSES:
            raise ValidationError(f"Invalid task status: {new_status!r}", details={"status": new_status})
        user = authz.require_user(self.session.current_user())

        with self.store.transaction("tasks"):
            task = self.store.get("tasks", task_id)
            project = self.store.get("projects", task.project_id)
            authz.check_work_item_write(user, project, task.developer_id, "update_task")
            previous = task.status
            task.status = new_status
            task.updated_at = _utcnow()
        self.audit.record(
            "task_updated", f"{user.name} moved task '{task.title}' from {previous} to {new_status}",
            project_id=task.project_id, diff={"task_id": task.id, "from": previous, "to": new_status},
        )
        return task

    # ── Progress ─────────────────────────────────────────────────────────

    def record_progress(self, project_id: str, developer_id: str | None, update: str, hours, on_date=None) -> ProgressLog:
        """Append an immutable progress entry for the logged-in developer.

        ``developer_id`` may be omitted; when given it must be the caller's own.
        """
        update = clean_str(update)
        if not update:
            raise ValidationError("update text is required", details={"short_update": "required"})
        try:
            hours = float(hours)
        except (TypeError, ValueError):
            raise ValidationError("hours must be a number", details={"hours": hours}) from None
        if not math.isfinite(hours) or hours < 0:
            raise ValidationError("hours must be a non-negative number", details={"hours": hours})
        try:
            day = parse_date_input(on_date) or _utcnow().date()
        except ValueError as e:
            raise ValidationError(str(e), details={"date": on_date}) from e

        with self.store.transaction("progress_logs"):
            project = self.store.get("projects", project_id)
            user, developer = self._developer_on(project, "record_progress")
            if developer_id and developer_id != developer.id:
                raise Forbidden("Progress can only be logged for yourself", role=user.role, action="record_progress")
            self._require_open(project, "log progress")
            log = self.store.add("progress_logs", ProgressLog(
                project_id=project.id,
                developer_id=developer.id,
                short_update=update,
                hours=hours,
                date=day,
            ))
        self.audit.record(
            "progress_logged", f"{user.name} logged {hours:g}h on {day.isoformat()}",
            project_id=project.id, diff={"progress_id": log.id, "hours": hours},
        )
        return log

    # ── Issues ───────────────────────────────────────────────────────────

    def report_issue(
        self, project_id: str, reporter_id: str | None, issue_type: str | None, title: str, description: str = "",
    ) -> Issue:
        """Raise an issue as an assigned developer or as the project's client.

        The reporter is always the session user (developer id for developers,
        user id for clients); a ``reporter_id`` that names anyone else is refused.
        """
        title = clean_str(title)
        if not title:
            raise ValidationError("title is required", details={"title": "required"})
        issue_type = issue_type or "query"
        if issue_type not in ISSUE_TYPES:
            raise ValidationError(f"Invalid issue type: {issue_type!r}", details={"type": issue_type})
        user = authz.require_role(self.session.current_user(), "developer", "client", action="report issues")

        with self.store.transaction("issues"):
            project = self.store.get("projects", project_id)
            if user.role == "client":
                authz.check_project_read(user, project)
                own_id = user.id
            else:
                own_id = self._developer_on(project, "report_issue")[1].id
            if reporter_id and reporter_id != own_id:
                raise Forbidden("Issues can only be reported as yourself", role=user.role, action="report_issue")
            issue = self.store.add("issues", Issue(
                project_id=project.id,
                reporter_id=own_id,
                reporter_role=user.role,
                type=issue_type,
                title=title,
                description=clean_str(description) or "",
                status="open",
            ))
        action = "client_issue_reported" if user.role == "client" else "issue_reported"
        self.audit.record(
            action, f"{user.name} reported {issue_type} '{issue.title}'",
            project_id=project.id, diff={"issue_id": issue.id, "type": issue_type},
        )
        return issue

    def update_issue_status(self, issue_id: str, new_status: str) -> Issue:
        if new_status not in ISSUE_STATUSES:
            raise ValidationError(f"Invalid issue status: {new_status!r}", details={"status": new_status})
        user = authz.require_user(self.session.current_user())

        with self.store.transaction("issues"):
            issue = self.store.get("issues", issue_id)
            project = self.store.get("projects", issue.project_id)
            author = issue.reporter_id if issue.reporter_role == "developer" else None
            authz.check_work_item_write(user, project, author, "update_issue")
            previous = issue.status
            if new_status == previous:
                return issue
            if new_status not in ISSUE_TRANSITIONS[previous]:
                raise InvalidTransition("Issue", issue.id, previous, new_status)
            issue.status = new_status
            issue.resolved_at = _utcnow() if new_status == "resolved" else None
        self.audit.record(
            "issue_updated", f"{user.name} moved issue '{issue.title}' from {previous} to {new_status}",
            project_id=issue.project_id, diff={"issue_id": issue.id, "from": previous, "to": new_status},
        )
        return issue

    # ── Feedback ─────────────────────────────────────────────────────────

    def submit_feedback(self, project_id: str, phase_id: str, rating, comments: str = "") -> Feedback:
        """Client rates one phase of their own project (1 to 5)."""
        user = authz.require_role(self.session.current_user(), "client", action="submit feedback")
        try:
            rating = int(rating)
        except (TypeError, ValueError):
            raise ValidationError("rating must be an integer", details={"rating": rating}) from None
        if not MIN_RATING <= rating <= MAX_RATING:
            raise ValidationError(
                f"rating must be between {MIN_RATING} and {MAX_RATING}", details={"rating": rating},
            )

        with self.store.transaction("feedback"):
            project = self.store.get("projects", project_id)
            authz.check_project_read(user, project)
            if project.phase(phase_id) is None:
                raise NotFoundError(resource="Phase", resource_id=phase_id)
            feedback = self.store.add("feedback", Feedback(
                project_id=project.id,
                client_user_id=user.id,
                phase_id=phase_id,
                rating=rating,
                comments=clean_str(comments) or "",
            ))
        self.audit.record(
            "client_feedback_submitted", f"{user.name} rated {phase_id} {rating}/5",
            project_id=project.id, diff={"feedback_id": feedback.id, "rating": rating},
        )
        return feedback
