"""
Project Lifecycle Engine — leads, projects, phases and their transitions.

    Project:  pending ──activate──► active ──deliver──► delivered
    Phase:    not_started ──► in_progress ──► completed   (forward only)

Activation is one atomic step: status, manager, earnings, assigned_at and
the client portal account are written in a single transaction, or nothing
is. The activation audit entry is appended after the commit.

Phase → developer assignments are the only stored side of that relation;
a developer's project list is read from them.
"""

import logging
import math
from datetime import date

from nightowl.core.exceptions import (
    ActivationFailed,
    ConflictError,
    InvalidTransition,
    NotFoundError,
    ValidationError,
)
from nightowl.models import _utcnow
from nightowl.models.client import CLIENT_SOURCES, CLIENT_VALIDITY, Client
from nightowl.models.project import PHASE_STATUSES, PhaseAssignment, Project, seed_phases
from nightowl.services import authorization as authz
from nightowl.services.identity_service import _secret_from, normalize_email
from nightowl.utils.helpers import clean_str, require_flag

logger = logging.getLogger(__name__)

LEAD_FIELDS = (
    "full_name", "email", "phone", "company", "website",
    "services_needed", "project_description", "company_summary",
)


class ProjectLifecycle:
    def __init__(self, store, directory, audit):
        self.store = store
        self.directory = directory
        self.session = directory.session
        self.audit = audit

    def _actor(self):
        return self.session.current_user()

    # ═══════════════════════════════════════════════════════════════
    # Leads
    # ═══════════════════════════════════════════════════════════════

    def _new_lead(self, fields: dict, source: str) -> Client:
        if source not in CLIENT_SOURCES:
            raise ValidationError(f"Unknown lead source: {source!r}")
        data = {k: clean_str(fields.get(k)) for k in LEAD_FIELDS}
        if not data["full_name"]:
            raise ValidationError("full_name is required", details={"full_name": "required"})
        data["email"] = normalize_email(data["email"])
        if not data["email"]:
            raise ValidationError("email is required", details={"email": "required"})
        status = fields.get("status") or "valid"
        if status not in CLIENT_VALIDITY:
            raise ValidationError(f"Invalid lead status: {status!r}", details={"status": status})
        return Client(
            **data,
            source=source,
            source_id=clean_str(fields.get("source_id")),
            status=status,
            is_active=True,
        )

    def _open_project(self, client: Client) -> tuple[Project, bool]:
        """Pending project for ``client``; reuses one that is already pending."""
        if client.status == "spam":
            raise ValidationError(f"Client {client.id} is marked as spam; no project can be opened")
        pending = (
            Project.query.filter_by(client_id=client.id, status="pending")
            .order_by(Project.seq).first()
        )
        if pending is not None:
            return pending, False
        project = Project(client_id=client.id, status="pending", phases=seed_phases())
        return self.store.add("projects", project), True

    def open_lead(self, fields: dict, *, source: str, actor=None) -> tuple[Client, Project | None]:
        """Record a lead and, when it is valid, its pending project.

        No authorization here; ``actor`` is who the audit entry names
        (None means "system").
        """
        with self.store.transaction("clients", "projects"):
            client = self.store.add("clients", self._new_lead(fields, source))
            project = self._open_project(client)[0] if client.status == "valid" else None
        if actor is None:
            logger.info("Lead %s recorded from %s (status=%s)", client.id, source, client.status)
        self.audit.record(
            "client_added" if actor else "lead_ingested",
            f"{actor.name if actor else 'System'} added {source} lead {client.full_name}"
            + (f" ({client.company})" if client.company else ""),
            project_id=project.id if project else None,
            diff={"client_id": client.id, "source_id": client.source_id, "status": client.status},
            actor=actor,
            system=actor is None,
        )
        return client, project

    def add_client(self, fields: dict) -> Client:
        """Owner records a lead by hand; a valid lead gets its pending project."""
        actor = authz.require_role(self._actor(), "owner", action="add clients")
        return self.open_lead(fields, source="manual", actor=actor)[0]

    def ingest_inbound_lead(self, fields: dict) -> Client:
        """Webhook intake; attributed to "system"."""
        return self.open_lead(fields, source="inbound")[0]

    def update_client_status(self, client_id: str, *, status: str | None = None, is_active: bool | None = None) -> Client:
        """Validity and active flag are the only mutable fields of a lead."""
        actor = authz.require_role(self._actor(), "owner", action="update clients")
        if status is not None and status not in CLIENT_VALIDITY:
            raise ValidationError(f"Invalid lead status: {status!r}", details={"status": status})
        if is_active is not None:
            try:
                is_active = require_flag(is_active, "is_active")
            except ValueError as exc:
                raise ValidationError(str(exc), details={"is_active": is_active}) from exc

        with self.store.transaction("clients"):
            client = self.store.get("clients", client_id)
            before = {"status": client.status, "is_active": client.is_active}
            if status is not None:
                client.status = status
            if is_active is not None:
                client.is_active = is_active
            after = {"status": client.status, "is_active": client.is_active}
        if before != after:
            self.audit.record(
                "client_updated",
                f"{actor.name} updated client {client.full_name}",
                diff={"client_id": client.id, "before": before, "after": after},
            )
        return client

    def create_project_for_client(self, client_id: str) -> Project:
        """Pending project with four fresh phases (an existing pending one is returned)."""
        actor = authz.require_role(self._actor(), "owner", action="create projects")
        with self.store.transaction("clients", "projects"):
            client = self.store.get("clients", client_id)
            project, created = self._open_project(client)
        if created:
            self.audit.record(
                "project_created",
                f"{actor.name} opened a project for {client.full_name}",
                project_id=project.id,
            )
        return project

    # ═══════════════════════════════════════════════════════════════
    # Project transitions
    # ═══════════════════════════════════════════════════════════════

    def activate_project(self, project_id: str, manager_id: str, earnings, client_credentials: dict) -> Project:
        """pending → active, provisioning the client portal account in the same commit.

        Raises:
            NotFoundError: unknown project.
            InvalidTransition: the project is not pending.
            ActivationFailed: a precondition failed or the client account
                could not be created; the project is left pending.
        """
        actor = authz.require_role(self._actor(), "owner", action="activate projects")
        credentials = client_credentials or {}
        if not isinstance(credentials, dict):
            raise ActivationFailed(project_id, "client credentials must be an object")
        created = False

        try:
            with self.store.transaction("projects", "users"):
                project = self.store.get("projects", project_id)
                if project.status != "pending":
                    raise InvalidTransition("Project", project.id, project.status, "active")

                manager = self.store.find("users", manager_id)
                if manager is None or manager.role != "manager" or not manager.is_active:
                    raise ActivationFailed(project.id, f"{manager_id!r} is not an active manager")
                amount = _parse_earnings(project.id, earnings)
                if not clean_str(credentials.get("username")) or not _secret_from(credentials):
                    raise ActivationFailed(project.id, "client credentials need a username and a secret")

                client_user, created = self.directory.provision_client_account(credentials)

                project.status = "active"
                project.manager_id = manager.id
                project.earnings = amount
                project.assigned_at = _utcnow()
                project.client_user_id = client_user.id
        except InvalidTransition:
            raise
        except (ConflictError, ValidationError) as exc:
            logger.warning("Activation of project %s rolled back: %s", project_id, exc)
            raise ActivationFailed(project_id, str(exc)) from exc

        if created:
            self.audit.record(
                "user_created",
                f"Client account '{client_user.username}' created for project {project.id}",
                project_id=project.id,
                diff={"user_id": client_user.id, "role": "client"},
            )
        self.audit.record(
            "project_activated",
            f"{actor.name} activated project for {project.client.full_name}: "
            f"manager {manager.name}, earnings {amount:.2f}",
            project_id=project.id,
            diff={"manager_id": manager.id, "earnings": amount, "client_user_id": client_user.id},
        )
        return project

    def deliver_project(self, project_id: str) -> Project:
        """active → delivered. Phases are frozen afterwards."""
        actor = authz.require_user(self._actor())
        with self.store.transaction("projects"):
            project = self.store.get("projects", project_id)
            authz.check_project_write(actor, project, "deliver_project")
            if project.status != "active":
                raise InvalidTransition("Project", project.id, project.status, "delivered")
            project.status = "delivered"
            project.delivered_at = _utcnow()
        self.audit.record(
            "project_delivered",
            f"{actor.name} marked project {project.id} delivered",
            project_id=project.id,
        )
        return project

    # ═══════════════════════════════════════════════════════════════
    # Phases
    # ═══════════════════════════════════════════════════════════════

    def _phase_of(self, project: Project, phase_id: str):
        phase = project.phase(phase_id)
        if phase is None:
            raise NotFoundError(resource="Phase", resource_id=phase_id)
        return phase

    def assign_developer_to_phase(self, project_id: str, phase_id: str, developer_id: str) -> Project:
        """Add a developer to a phase. Re-adding one already there changes nothing."""
        actor = authz.require_user(self._actor())
        with self.store.transaction("projects", "developers"):
            project = self.store.get("projects", project_id)
            authz.check_project_write(actor, project, "assign_developer")
            phase = self._phase_of(project, phase_id)
            developer = self.store.get("developers", developer_id)
            if actor.role == "manager":
                authz.check_developer_manage(actor, developer, "assign_developer")
            if project.status != "active":
                raise InvalidTransition(
                    "Project", project.id, project.status, "assign developer",
                    reason="developers can only be assigned to an active project",
                )
            if not developer.is_active:
                raise ValidationError(f"Developer {developer.id} is inactive")

            if developer.id in phase.assigned_developers:
                logger.debug("Developer %s already on %s/%s", developer.id, project.id, phase.id)
                return project
            phase.assignments.append(PhaseAssignment(
                developer_id=developer.id,
                position=len(phase.assignments),
            ))

        self.audit.record(
            "developer_assigned",
            f"{actor.name} assigned {developer.name} to {phase.name}",
            project_id=project.id,
            diff={"phase_id": phase.id, "developer_id": developer.id},
        )
        return project

    def advance_phase_status(self, project_id: str, phase_id: str, new_status: str) -> Project:
        """Move a phase forward; going backwards or touching a delivered project is refused."""
        if new_status not in PHASE_STATUSES:
            raise ValidationError(f"Invalid phase status: {new_status!r}", details={"status": new_status})
        actor = authz.require_user(self._actor())

        with self.store.transaction("projects"):
            project = self.store.get("projects", project_id)
            authz.check_project_write(actor, project, "advance_phase")
            phase = self._phase_of(project, phase_id)
            if project.status != "active":
                raise InvalidTransition(
                    "Phase", phase.id, phase.status, new_status,
                    reason=f"project {project.id} is {project.status}",
                )
            current = PHASE_STATUSES.index(phase.status)
            target = PHASE_STATUSES.index(new_status)
            if target < current:
                raise InvalidTransition("Phase", phase.id, phase.status, new_status, reason="phases only move forward")
            if target == current:
                return project

            previous = phase.status
            today = date.today()
            phase.status = new_status
            if phase.start_date is None:
                phase.start_date = today
            if new_status == "completed":
                phase.end_date = today

        self.audit.record(
            "phase_status_changed",
            f"{actor.name} moved {phase.name} from {previous} to {new_status}",
            project_id=project.id,
            diff={"phase_id": phase.id, "from": previous, "to": new_status},
        )
        return project


def _parse_earnings(project_id: str, earnings) -> float:
    try:
        amount = float(earnings)
    except (TypeError, ValueError):
        raise ActivationFailed(project_id, f"earnings must be a number, got {earnings!r}") from None
    if not math.isfinite(amount) or amount < 0:
        raise ActivationFailed(project_id, "earnings must be a non-negative amount")
    return amount
