"""
Role-Scoped Query Views — read-only projections behind each dashboard.

Nothing is stored for these; every call filters the raw collections by
the session user's ownership and assignment relations. The owner sees
everything, every other role sees the slice authorization grants it.
"""

import logging

from sqlalchemy import func, or_, select

from nightowl.core.exceptions import Forbidden
from nightowl.models import db
from nightowl.models.auth import User
from nightowl.models.client import Client
from nightowl.models.project import PhaseAssignment, Project
from nightowl.models.team import Developer
from nightowl.models.work import Feedback, Issue, ProgressLog, Task
from nightowl.services import authorization as authz

logger = logging.getLogger(__name__)


class ScopedViews:
    def __init__(self, store, session_slot):
        self.store = store
        self.session = session_slot

    def _user(self):
        return authz.require_user(self.session.current_user())

    def _project_scope(self, user) -> list[str] | None:
        """Project ids the user may read; None means unrestricted."""
        if user.role == authz.OWNER:
            return None
        if user.role == authz.MANAGER:
            rows = db.session.query(Project.id).filter(Project.manager_id == user.id).all()
            return [r.id for r in rows]
        if user.role == authz.DEVELOPER:
            dev = authz.developer_for(user)
            return authz.assigned_project_ids(dev.id) if dev else []
        own = authz.client_project_for(user)
        return [own.id] if own else []

    # ── Projects ─────────────────────────────────────────────────────────

    def projects(self, status: str | None = None) -> list[Project]:
        user = self._user()
        q = self.store.query("projects")
        scope = self._project_scope(user)
        if scope is not None:
            q = q.filter(Project.id.in_(scope))
        if status:
            q = q.filter(Project.status == status)
        return q.all()

    def project(self, project_id: str) -> Project:
        user = self._user()
        project = self.store.get("projects", project_id)
        authz.check_project_read(user, project)
        return project

    def client_project(self) -> Project | None:
        """The client's own project, or None."""
        user = authz.require_role(self.session.current_user(), authz.CLIENT, action="view the client portal")
        return authz.client_project_for(user)

    # ── Developers ───────────────────────────────────────────────────────

    def developers(self, *, include_inactive: bool = False) -> list[Developer]:
        user = self._user()
        q = self.store.query("developers")
        if user.role == authz.MANAGER:
            q = q.filter(Developer.manager_id == user.id)
        elif user.role == authz.DEVELOPER:
            q = q.filter(Developer.user_id == user.id)
        elif user.role == authz.CLIENT:
            own = authz.client_project_for(user)
            assigned = select(PhaseAssignment.developer_id).where(
                PhaseAssignment.project_id == (own.id if own else None)
            )
            q = q.filter(Developer.id.in_(assigned))
        if not include_inactive:
            q = q.filter(Developer.is_active.is_(True))
        return q.all()

    def developer_projects(self, developer_id: str) -> list[Project]:
        """Projects a developer is assigned to, derived from phase assignments."""
        user = self._user()
        developer = self.store.get("developers", developer_id)
        if not authz.can_read_developer(user, developer):
            raise Forbidden(
                f"Developer {developer.id} is outside your scope", role=user.role, action="developer_projects",
            )
        ids = developer.project_ids()
        if not ids:
            return []
        by_id = {p.id: p for p in Project.query.filter(Project.id.in_(ids)).all()}
        return [by_id[i] for i in ids if i in by_id and authz.can_read_project(user, by_id[i])]

    # ── Work items ───────────────────────────────────────────────────────

    def _work_items(self, kind: str, model, author_column, project_id: str | None):
        user = self._user()
        q = self.store.query(kind)
        scope = self._project_scope(user)
        if scope is not None:
            condition = model.project_id.in_(scope)
            dev = authz.developer_for(user)
            if dev is not None and author_column is not None:
                condition = or_(condition, author_column == dev.id)
            q = q.filter(condition)
        if project_id:
            q = q.filter(model.project_id == project_id)
        return q

    def tasks(self, project_id: str | None = None, status: str | None = None) -> list[Task]:
        q = self._work_items("tasks", Task, Task.developer_id, project_id)
        if status:
            q = q.filter(Task.status == status)
        return q.all()

    def progress_logs(self, project_id: str | None = None) -> list[ProgressLog]:
        return self._work_items("progress_logs", ProgressLog, ProgressLog.developer_id, project_id).all()

    def issues(self, project_id: str | None = None, status: str | None = None) -> list[Issue]:
        q = self._work_items("issues", Issue, Issue.reporter_id, project_id)
        if status:
            q = q.filter(Issue.status == status)
        return q.all()

    def feedback(self, project_id: str | None = None) -> list[Feedback]:
        return self._work_items("feedback", Feedback, None, project_id).all()

    # ── Owner dashboards ─────────────────────────────────────────────────

    def clients(self, status: str | None = None, source: str | None = None) -> list[Client]:
        authz.require_role(self.session.current_user(), authz.OWNER, action="list clients")
        q = self.store.query("clients")
        if status:
            q = q.filter(Client.status == status)
        if source:
            q = q.filter(Client.source == source)
        return q.all()

    def owner_stats(self) -> dict:
        authz.require_role(self.session.current_user(), authz.OWNER, action="view statistics")

        lead_counts = dict(
            db.session.query(Client.status, func.count(Client.id)).group_by(Client.status).all()
        )
        project_counts = dict(
            db.session.query(Project.status, func.count(Project.id)).group_by(Project.status).all()
        )
        earnings = db.session.query(func.coalesce(func.sum(Project.earnings), 0)).filter(
            Project.status.in_(("active", "delivered"))
        ).scalar()

        return {
            "total_clients": sum(lead_counts.values()),
            "valid_clients": lead_counts.get("valid", 0),
            "spam_clients": lead_counts.get("spam", 0),
            "manual_clients": Client.query.filter_by(source="manual").count(),
            "inbound_clients": Client.query.filter_by(source="inbound").count(),
            "pending_projects": project_counts.get("pending", 0),
            "active_projects": project_counts.get("active", 0),
            "delivered_projects": project_counts.get("delivered", 0),
            "total_earnings": float(earnings or 0),
            "managers": User.query.filter_by(role="manager", is_active=True).count(),
            "developers": Developer.query.filter_by(is_active=True).count(),
        }

    def client_link_faults(self) -> list[dict]:
        """Active or delivered projects whose client portal account does not resolve."""
        authz.require_role(self.session.current_user(), authz.OWNER, action="view the consistency report")
        faults = []
        projects = self.store.query("projects").filter(Project.status.in_(("active", "delivered"))).all()
        for project in projects:
            account = project.client_user
            if account is None:
                problem = "missing client account"
            elif not account.is_active:
                problem = "client account inactive"
            elif account.role != "client":
                problem = f"linked account has role '{account.role}'"
            else:
                continue
            faults.append({
                "project_id": project.id,
                "client_user_id": project.client_user_id,
                "problem": problem,
            })
        if faults:
            logger.warning("%d project(s) with broken client portal links", len(faults))
        return faults
