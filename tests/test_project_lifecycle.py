"""
Project Lifecycle Engine tests.

State machines under test:

    Project:  pending -> active -> delivered
    Phase:    not_started -> in_progress -> completed   (forward only)

Covers:
  - Lead intake (manual / inbound / spam) and four-phase project seeding
  - Activation: happy path, client-account reuse, all-or-nothing on failure
  - Delivery and phase freezing
  - Developer assignment idempotence and the derived developer → project view
  - Audit entries for every transition
"""

import pytest

from nightowl.core.exceptions import (
    ActivationFailed,
    Forbidden,
    InvalidTransition,
    NotFoundError,
    ValidationError,
)
from nightowl.models.audit import AuditLog
from nightowl.models.auth import User
from nightowl.models.project import PhaseAssignment, Project

CREDS = {"username": "john", "secret": "pw1", "email": "john@techcorp.com", "name": "John Smith"}


def _last_audit(action):
    return AuditLog.query.filter_by(action=action).order_by(AuditLog.id.desc()).first()


# ═════════════════════════════════════════════════════════════════════════════
# Leads & project creation
# ═════════════════════════════════════════════════════════════════════════════


class TestLeads:
    def test_manual_lead_opens_pending_project(self, core, owner, lead_fields):
        client = core.lifecycle.add_client(lead_fields)
        assert client.source == "manual"
        assert client.status == "valid"
        project = Project.query.filter_by(client_id=client.id).one()
        assert project.status == "pending"
        assert _last_audit("client_added").project_id == project.id

    def test_create_project_for_client_seeds_four_phases(self, core, pending_project):
        assert pending_project.status == "pending"
        assert len(pending_project.phases) == 4
        assert [ph.id for ph in pending_project.phases] == ["phase-1", "phase-2", "phase-3", "phase-4"]
        assert all(ph.status == "not_started" for ph in pending_project.phases)
        assert all(ph.assigned_developers == [] for ph in pending_project.phases)
        assert pending_project.manager_id is None
        assert pending_project.client_credentials is None

    def test_create_project_reuses_open_pending_project(self, core, owner, lead_fields):
        client = core.lifecycle.add_client(lead_fields)
        first = core.lifecycle.create_project_for_client(client.id)
        second = core.lifecycle.create_project_for_client(client.id)
        assert first.id == second.id
        assert Project.query.filter_by(client_id=client.id).count() == 1

    def test_new_project_after_delivery(self, core, active_project):
        core.lifecycle.deliver_project(active_project.id)
        fresh = core.lifecycle.create_project_for_client(active_project.client_id)
        assert fresh.id != active_project.id
        assert fresh.status == "pending"
        assert _last_audit("project_created").project_id == fresh.id

    def test_spam_lead_gets_no_project(self, core, owner, lead_fields):
        client = core.lifecycle.add_client({**lead_fields, "status": "spam"})
        assert Project.query.filter_by(client_id=client.id).count() == 0
        with pytest.raises(ValidationError):
            core.lifecycle.create_project_for_client(client.id)

    def test_inbound_lead_is_attributed_to_system(self, core, lead_fields):
        client = core.lifecycle.ingest_inbound_lead({**lead_fields, "source_id": "webhook-123"})
        assert client.source == "inbound"
        assert client.source_id == "webhook-123"
        entry = _last_audit("lead_ingested")
        assert entry.actor == "system"

    def test_lead_needs_name_and_valid_email(self, core, owner, lead_fields):
        with pytest.raises(ValidationError):
            core.lifecycle.add_client({**lead_fields, "full_name": ""})
        with pytest.raises(ValidationError):
            core.lifecycle.add_client({**lead_fields, "email": "nope"})

    def test_only_owner_adds_clients(self, core, manager, login, lead_fields):
        login("maria", "mgr-secret")
        with pytest.raises(Forbidden):
            core.lifecycle.add_client(lead_fields)

    def test_update_client_status(self, core, owner, lead_fields):
        client = core.lifecycle.add_client(lead_fields)
        core.lifecycle.update_client_status(client.id, status="spam", is_active=False)
        assert client.status == "spam"
        assert client.is_active is False
        assert _last_audit("client_updated") is not None

    def test_update_client_rejects_bad_status(self, core, owner, lead_fields):
        client = core.lifecycle.add_client(lead_fields)
        with pytest.raises(ValidationError):
            core.lifecycle.update_client_status(client.id, status="maybe")

    @pytest.mark.parametrize("flag", ["false", 0, "no"])
    def test_update_client_accepts_only_real_booleans(self, core, owner, lead_fields, flag):
        client = core.lifecycle.add_client(lead_fields)
        with pytest.raises(ValidationError):
            core.lifecycle.update_client_status(client.id, is_active=flag)
        assert core.store.get("clients", client.id).is_active is True
        assert _last_audit("client_updated") is None

    def test_unknown_client(self, core, owner):
        with pytest.raises(NotFoundError):
            core.lifecycle.create_project_for_client("missing")


# ═════════════════════════════════════════════════════════════════════════════
# Activation
# ═════════════════════════════════════════════════════════════════════════════


class TestActivation:
    def test_scenario_activate_then_client_login(self, core, pending_project, manager, login):
        project = core.lifecycle.activate_project(pending_project.id, manager.id, 5000, CREDS)

        assert project.status == "active"
        assert project.manager_id == manager.id
        assert project.earnings == 5000
        assert project.assigned_at is not None

        john = User.query.filter_by(username="john", is_active=True).one()
        assert john.role == "client"
        assert project.client_user_id == john.id
        assert project.client_credentials["username"] == "john"
        assert "secret" not in project.client_credentials

        assert login("john", "pw1").id == john.id

    def test_activation_audit_names_manager_and_amount(self, core, pending_project, manager):
        core.lifecycle.activate_project(pending_project.id, manager.id, 5000, CREDS)
        entry = _last_audit("project_activated")
        assert entry.project_id == pending_project.id
        assert "Maria Manager" in entry.description
        assert "5000.00" in entry.description
        assert entry.diff["manager_id"] == manager.id
        assert _last_audit("user_created").diff["role"] == "client"

    def test_duplicate_client_username_keeps_project_pending(self, core, pending_project, manager):
        taken = {**CREDS, "username": "maria"}
        with pytest.raises(ActivationFailed):
            core.lifecycle.activate_project(pending_project.id, manager.id, 5000, taken)

        project = core.store.get("projects", pending_project.id)
        assert project.status == "pending"
        assert project.manager_id is None
        assert project.earnings is None
        assert project.client_user_id is None
        assert project.client_credentials is None
        assert User.query.filter_by(role="client").count() == 0
        assert _last_audit("project_activated") is None

    def test_existing_client_account_is_reused(self, core, active_project, manager, lead_fields):
        second = core.lifecycle.add_client({**lead_fields, "full_name": "John Again", "email": "j2@techcorp.com"})
        project = Project.query.filter_by(client_id=second.id).one()
        core.lifecycle.activate_project(project.id, manager.id, 100, CREDS)
        assert project.client_user_id == active_project.client_user_id
        assert User.query.filter_by(username="john").count() == 1

    def test_same_username_with_different_secret_fails(self, core, active_project, manager, lead_fields):
        second = core.lifecycle.add_client({**lead_fields, "email": "j2@techcorp.com"})
        project = Project.query.filter_by(client_id=second.id).one()
        with pytest.raises(ActivationFailed):
            core.lifecycle.activate_project(project.id, manager.id, 100, {**CREDS, "secret": "other"})
        assert core.store.get("projects", project.id).status == "pending"

    def test_activating_active_project_is_invalid_transition(self, core, active_project, manager):
        with pytest.raises(InvalidTransition):
            core.lifecycle.activate_project(active_project.id, manager.id, 1, CREDS)

    @pytest.mark.parametrize("earnings", [-1, "abc", None, float("nan")])
    def test_bad_earnings(self, core, pending_project, manager, earnings):
        with pytest.raises(ActivationFailed):
            core.lifecycle.activate_project(pending_project.id, manager.id, earnings, CREDS)
        assert core.store.get("projects", pending_project.id).status == "pending"

    def test_zero_earnings_allowed(self, core, pending_project, manager):
        project = core.lifecycle.activate_project(pending_project.id, manager.id, 0, CREDS)
        assert project.earnings == 0

    def test_manager_must_be_an_active_manager(self, core, pending_project, owner, manager):
        with pytest.raises(ActivationFailed):
            core.lifecycle.activate_project(pending_project.id, owner.id, 10, CREDS)
        with pytest.raises(ActivationFailed):
            core.lifecycle.activate_project(pending_project.id, "nobody", 10, CREDS)

    def test_incomplete_credentials(self, core, pending_project, manager):
        with pytest.raises(ActivationFailed):
            core.lifecycle.activate_project(pending_project.id, manager.id, 10, {"username": "john"})
        with pytest.raises(ActivationFailed):
            core.lifecycle.activate_project(pending_project.id, manager.id, 10, {})

    @pytest.mark.parametrize("credentials", ["john", ["john", "pw1"], 42])
    def test_non_object_credentials_keep_project_pending(self, core, pending_project, manager, credentials):
        with pytest.raises(ActivationFailed):
            core.lifecycle.activate_project(pending_project.id, manager.id, 5000, credentials)

        project = core.store.get("projects", pending_project.id)
        assert project.status == "pending"
        assert project.manager_id is None
        assert project.client_user_id is None
        assert User.query.filter_by(role="client").count() == 0

    def test_only_owner_activates(self, core, pending_project, manager, login):
        login("maria", "mgr-secret")
        with pytest.raises(Forbidden):
            core.lifecycle.activate_project(pending_project.id, manager.id, 10, CREDS)

    def test_unknown_project(self, core, manager):
        with pytest.raises(NotFoundError):
            core.lifecycle.activate_project("missing", manager.id, 10, CREDS)


# ═════════════════════════════════════════════════════════════════════════════
# Delivery
# ═════════════════════════════════════════════════════════════════════════════


class TestDelivery:
    def test_deliver(self, core, active_project):
        project = core.lifecycle.deliver_project(active_project.id)
        assert project.status == "delivered"
        assert project.delivered_at is not None
        assert _last_audit("project_delivered").project_id == project.id

    def test_manager_delivers_own_project(self, core, active_project, login):
        login("maria", "mgr-secret")
        assert core.lifecycle.deliver_project(active_project.id).status == "delivered"

    def test_pending_cannot_be_delivered(self, core, pending_project):
        with pytest.raises(InvalidTransition):
            core.lifecycle.deliver_project(pending_project.id)

    def test_deliver_twice(self, core, active_project):
        core.lifecycle.deliver_project(active_project.id)
        with pytest.raises(InvalidTransition):
            core.lifecycle.deliver_project(active_project.id)

    def test_phases_frozen_after_delivery(self, core, active_project, developer):
        core.lifecycle.deliver_project(active_project.id)
        with pytest.raises(InvalidTransition):
            core.lifecycle.advance_phase_status(active_project.id, "phase-2", "in_progress")
        with pytest.raises(InvalidTransition):
            core.lifecycle.assign_developer_to_phase(active_project.id, "phase-2", developer.id)


# ═════════════════════════════════════════════════════════════════════════════
# Phases
# ═════════════════════════════════════════════════════════════════════════════


class TestPhaseStatus:
    def test_forward_moves(self, core, active_project):
        core.lifecycle.advance_phase_status(active_project.id, "phase-1", "in_progress")
        phase = active_project.phase("phase-1")
        assert phase.status == "in_progress"
        assert phase.start_date is not None
        assert phase.end_date is None

        core.lifecycle.advance_phase_status(active_project.id, "phase-1", "completed")
        assert phase.status == "completed"
        assert phase.end_date is not None

        entry = _last_audit("phase_status_changed")
        assert entry.diff == {"phase_id": "phase-1", "from": "in_progress", "to": "completed"}

    def test_skip_ahead_is_allowed(self, core, active_project):
        core.lifecycle.advance_phase_status(active_project.id, "phase-2", "completed")
        assert active_project.phase("phase-2").status == "completed"

    def test_backwards_is_refused(self, core, active_project):
        core.lifecycle.advance_phase_status(active_project.id, "phase-1", "completed")
        with pytest.raises(InvalidTransition):
            core.lifecycle.advance_phase_status(active_project.id, "phase-1", "in_progress")
        assert active_project.phase("phase-1").status == "completed"

    def test_same_status_is_noop(self, core, active_project):
        before = AuditLog.query.count()
        core.lifecycle.advance_phase_status(active_project.id, "phase-1", "not_started")
        assert AuditLog.query.count() == before

    def test_pending_project_phase_cannot_move(self, core, pending_project):
        with pytest.raises(InvalidTransition):
            core.lifecycle.advance_phase_status(pending_project.id, "phase-1", "in_progress")

    def test_unknown_status_and_phase(self, core, active_project):
        with pytest.raises(ValidationError):
            core.lifecycle.advance_phase_status(active_project.id, "phase-1", "done")
        with pytest.raises(NotFoundError):
            core.lifecycle.advance_phase_status(active_project.id, "phase-9", "completed")

    def test_phase_ids_are_stable(self, core, active_project):
        ids = [ph.id for ph in active_project.phases]
        core.lifecycle.advance_phase_status(active_project.id, "phase-3", "in_progress")
        core.lifecycle.deliver_project(active_project.id)
        assert [ph.id for ph in core.store.get("projects", active_project.id).phases] == ids


class TestAssignment:
    def test_assign_is_idempotent(self, core, active_project, developer):
        core.lifecycle.assign_developer_to_phase(active_project.id, "phase-1", developer.id)
        core.lifecycle.assign_developer_to_phase(active_project.id, "phase-1", developer.id)
        assert active_project.phase("phase-1").assigned_developers == [developer.id]
        assert developer.project_ids() == [active_project.id]
        assert PhaseAssignment.query.filter_by(developer_id=developer.id).count() == 1
        assert AuditLog.query.filter_by(action="developer_assigned").count() == 1

    def test_two_phases_one_project(self, core, active_project, developer):
        core.lifecycle.assign_developer_to_phase(active_project.id, "phase-2", developer.id)
        assert active_project.phase("phase-2").assigned_developers == [developer.id]
        assert developer.project_ids() == [active_project.id]

    def test_assignment_order_is_kept(self, core, active_project, developer, login):
        login("maria", "mgr-secret")
        other = core.directory.add_developer({"name": "Ada", "username": "ada", "secret": "pw"})
        core.lifecycle.assign_developer_to_phase(active_project.id, "phase-1", other.id)
        assert active_project.phase("phase-1").assigned_developers == [developer.id, other.id]

    def test_pending_project_refuses_assignment(self, core, pending_project, developer):
        with pytest.raises(InvalidTransition):
            core.lifecycle.assign_developer_to_phase(pending_project.id, "phase-1", developer.id)
        assert developer.project_ids() == []

    def test_inactive_developer_refused(self, core, active_project, developer):
        core.directory.deactivate_user(developer.user_id)
        with pytest.raises(ValidationError):
            core.lifecycle.assign_developer_to_phase(active_project.id, "phase-2", developer.id)

    def test_unknown_developer_or_phase(self, core, active_project, developer):
        with pytest.raises(NotFoundError):
            core.lifecycle.assign_developer_to_phase(active_project.id, "phase-1", "missing")
        with pytest.raises(NotFoundError):
            core.lifecycle.assign_developer_to_phase(active_project.id, "phase-7", developer.id)

    def test_manager_cannot_assign_foreign_developer(self, core, active_project, login):
        core.directory.create_user({"role": "manager", "name": "Mike", "username": "mike", "secret": "m"})
        login("mike", "m")
        foreign = core.directory.add_developer({"name": "Foreign", "username": "fdev", "secret": "f"})
        login("maria", "mgr-secret")
        with pytest.raises(Forbidden):
            core.lifecycle.assign_developer_to_phase(active_project.id, "phase-1", foreign.id)
        assert foreign.project_ids() == []
