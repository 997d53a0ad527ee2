"""
Role-Scoped Authorization — pure checks over (session user, entity ownership).

Nothing here is stored. Each service calls these before it reads or mutates
an entity; a UI hiding a button is never taken as permission.

    owner      unrestricted
    manager    projects and developers whose manager_id is the manager;
               read-only over tasks / progress / issues of those projects
    developer  tasks / progress / issues they authored, or that belong to a
               project where they are assigned to at least one phase
    client     read-only over exactly one project (see client_project_for);
               may create issues and feedback on it

Usage:
    from nightowl.services import authorization as authz

    authz.require_role(user, "owner", "manager", action="activate projects")
    authz.check_project_read(user, project)
"""

import logging

from nightowl.core.exceptions import AuthenticationRequired, Forbidden
from nightowl.models import db
from nightowl.models.auth import User
from nightowl.models.client import Client
from nightowl.models.project import PhaseAssignment, Project
from nightowl.models.team import Developer

logger = logging.getLogger(__name__)

OWNER = "owner"
MANAGER = "manager"
DEVELOPER = "developer"
CLIENT = "client"

# role of the creator → roles it may create
CREATABLE_ROLES = {
    OWNER: {MANAGER},
    MANAGER: {DEVELOPER},
}


def _deny(user: User, message: str, action: str | None = None):
    logger.warning("Denied %s (%s): %s", user.username, user.role, message)
    raise Forbidden(message, role=user.role, action=action)


def require_user(user: User | None) -> User:
    if user is None:
        raise AuthenticationRequired()
    return user


def require_role(user: User | None, *roles: str, action: str | None = None) -> User:
    """Raise unless a user is logged in and holds one of ``roles``."""
    user = require_user(user)
    if user.role not in roles:
        _deny(user, f"Role '{user.role}' may not {action or 'perform this action'}", action)
    return user


def check_can_create(user: User | None, role: str) -> User:
    user = require_user(user)
    if role not in CREATABLE_ROLES.get(user.role, set()):
        _deny(user, f"Role '{user.role}' may not create {role} accounts", "create_user")
    return user


# ── Relationship lookups ─────────────────────────────────────────────────────

def developer_for(user: User | None) -> Developer | None:
    """Developer record paired with a developer-role user."""
    if user is None or user.role != DEVELOPER:
        return None
    return Developer.query.filter_by(user_id=user.id).first()


def is_assigned(developer_id: str, project_id: str) -> bool:
    return db.session.query(
        PhaseAssignment.query.filter_by(developer_id=developer_id, project_id=project_id).exists()
    ).scalar()


def assigned_project_ids(developer_id: str) -> list[str]:
    rows = (
        db.session.query(PhaseAssignment.project_id)
        .filter(PhaseAssignment.developer_id == developer_id)
        .distinct()
        .all()
    )
    return [r.project_id for r in rows]


def client_project_for(user: User | None) -> Project | None:
    """The one project a client user may see.

    Resolution order: the project whose portal account is this user; then a
    project whose portal account shares the user's email; then the project
    of a lead whose email matches the user's email.
    """
    if user is None or user.role != CLIENT:
        return None
    project = (
        Project.query.filter(Project.client_user_id == user.id)
        .order_by(Project.seq).first()
    )
    if project is not None or not user.email:
        return project
    project = (
        Project.query.join(User, Project.client_user_id == User.id)
        .filter(User.email == user.email)
        .order_by(Project.seq).first()
    )
    if project is not None:
        return project
    lead = Client.query.filter_by(email=user.email).order_by(Client.seq).first()
    if lead is None:
        return None
    return Project.query.filter_by(client_id=lead.id).order_by(Project.seq).first()


# ── Projects ─────────────────────────────────────────────────────────────────

def can_read_project(user: User | None, project: Project) -> bool:
    if user is None:
        return False
    if user.role == OWNER:
        return True
    if user.role == MANAGER:
        return project.manager_id == user.id
    if user.role == DEVELOPER:
        dev = developer_for(user)
        return dev is not None and is_assigned(dev.id, project.id)
    if user.role == CLIENT:
        own = client_project_for(user)
        return own is not None and own.id == project.id
    return False


def check_project_read(user: User | None, project: Project) -> None:
    user = require_user(user)
    if not can_read_project(user, project):
        _deny(user, f"Project {project.id} is outside your scope", "read_project")


def check_project_write(user: User | None, project: Project, action: str) -> None:
    """Owner, or the manager the project is assigned to."""
    user = require_user(user)
    if user.role == OWNER:
        return
    if user.role == MANAGER and project.manager_id == user.id:
        return
    _deny(user, f"Role '{user.role}' may not {action} on project {project.id}", action)


# ── Developers ───────────────────────────────────────────────────────────────

def check_developer_manage(user: User | None, developer: Developer, action: str) -> None:
    user = require_user(user)
    if user.role == OWNER:
        return
    if user.role == MANAGER and developer.manager_id == user.id:
        return
    _deny(user, f"Developer {developer.id} is outside your scope", action)


def can_read_developer(user: User | None, developer: Developer) -> bool:
    if user is None:
        return False
    if user.role == OWNER:
        return True
    if user.role == MANAGER:
        return developer.manager_id == user.id
    if user.role == DEVELOPER:
        return developer.user_id == user.id
    if user.role == CLIENT:
        own = client_project_for(user)
        return own is not None and is_assigned(developer.id, own.id)
    return False


# ── Work items (tasks, progress logs, issues) ────────────────────────────────

def can_read_work_item(user: User | None, project: Project, author_developer_id: str | None = None) -> bool:
    if user is None:
        return False
    if user.role == DEVELOPER:
        dev = developer_for(user)
        if dev is None:
            return False
        return author_developer_id == dev.id or is_assigned(dev.id, project.id)
    return can_read_project(user, project)


def check_work_item_write(user: User | None, project: Project, author_developer_id: str | None, action: str) -> None:
    """Owner, or a developer who authored the item or is assigned to its project."""
    user = require_user(user)
    if user.role == OWNER:
        return
    if user.role == DEVELOPER:
        dev = developer_for(user)
        if dev is not None and (author_developer_id == dev.id or is_assigned(dev.id, project.id)):
            return
    _deny(user, f"Role '{user.role}' may not {action} on project {project.id}", action)
