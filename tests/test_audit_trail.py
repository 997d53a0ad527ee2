"""
Audit Trail tests.

Covers:
  - Entries are attributed to the session user, or to "system"
  - read(): newest-first, limit, filters, owner only
  - Bounded retention: oldest entries evicted first, chronological order kept
  - Best-effort writes: a failed audit write never rolls back the action,
    is logged at ERROR and counted
"""

import logging

import pytest
from sqlalchemy.exc import OperationalError

from nightowl.core.exceptions import AuthenticationRequired, Forbidden
from nightowl.models import db
from nightowl.models.audit import AuditLog
from nightowl.models.client import Client
from nightowl.services import audit_service
from nightowl.services.audit_service import AuditTrail


class TestAttribution:
    def test_session_user_is_the_actor(self, core, owner):
        entry = core.audit.record("client_updated", "touch")
        assert entry.actor_user_id == owner.id
        assert entry.actor == "owner"
        assert entry.actor_role == "owner"

    def test_no_session_means_system(self, core):
        entry = core.audit.record("lead_ingested", "webhook lead")
        assert entry.actor_user_id == "system"
        assert entry.actor == "system"
        assert entry.actor_role == "system"

    def test_explicit_system_overrides_session(self, core, owner):
        entry = core.audit.record("lead_ingested", "webhook lead", system=True)
        assert entry.actor == "system"

    def test_unknown_action_is_rejected_before_writing(self, core, owner):
        before = AuditLog.query.count()
        with pytest.raises(ValueError):
            core.audit.record("client_renamed", "not a tracked action")
        assert AuditLog.query.count() == before
        assert core.audit.failed_writes == 0

    def test_diff_round_trips_as_json(self, core, owner):
        entry = core.audit.record("client_updated", "x", diff={"before": {"status": "valid"}})
        assert db.session.get(AuditLog, entry.id).diff == {"before": {"status": "valid"}}


class TestRead:
    def test_newest_first(self, core, owner):
        for n in range(5):
            core.audit.record("client_updated", f"entry {n}")
        entries = core.audit.read(3)
        assert [e.description for e in entries] == ["entry 4", "entry 3", "entry 2"]

    def test_filters(self, core, active_project):
        entries = core.audit.read(action="project_activated")
        assert len(entries) == 1
        scoped = core.audit.read(project_id=active_project.id)
        assert {e.action for e in scoped} >= {"project_activated", "developer_assigned"}

    def test_no_limit_returns_everything(self, core, owner):
        assert len(core.audit.read()) == AuditLog.query.count()

    def test_owner_only(self, core, manager, login):
        login("maria", "mgr-secret")
        with pytest.raises(Forbidden):
            core.audit.read(10)

    def test_anonymous(self, core):
        with pytest.raises(AuthenticationRequired):
            core.audit.read(10)


class TestRetention:
    def test_1500_actions_keep_most_recent_1000_in_order(self, core):
        assert core.audit.max_entries == 1000
        AuditLog.query.delete()
        for n in range(1500):
            core.audit.record("client_updated", f"action {n}", system=True)

        kept = core.audit.chronological()
        assert len(kept) == 1000
        assert [e.description for e in kept] == [f"action {n}" for n in range(500, 1500)]

    def test_small_cap(self, core):
        trail = AuditTrail(core.store, core.session, max_entries=3)
        AuditLog.query.delete()
        for n in range(5):
            trail.record("client_updated", f"a{n}", system=True)
        assert [e.description for e in trail.chronological()] == ["a2", "a3", "a4"]


class TestBestEffort:
    def _broken_writer(self, **kwargs):
        raise OperationalError("INSERT INTO audit_logs", {}, Exception("disk I/O error"))

    def test_failed_write_does_not_roll_back_action(self, core, owner, lead_fields, monkeypatch, caplog):
        monkeypatch.setattr(audit_service, "write_audit", self._broken_writer)
        with caplog.at_level(logging.ERROR, logger="nightowl.services.audit_service"):
            client = core.lifecycle.add_client(lead_fields)

        assert db.session.get(Client, client.id) is not None
        assert core.audit.failed_writes == 1
        assert "Audit write failed" in caplog.text

    def test_record_returns_none_on_failure(self, core, monkeypatch):
        monkeypatch.setattr(audit_service, "write_audit", self._broken_writer)
        assert core.audit.record("login", "x", system=True) is None
        assert core.audit.failed_writes == 1
