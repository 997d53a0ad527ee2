"""
Record Store tests.

Covers:
  - get_records / save_records round-trip (order and contents)
  - replace-in-full semantics (reorder, delete absent ids)
  - input validation (missing / duplicate ids, append-only audit log)
  - transaction commit / rollback
  - per-collection write serialization across threads, including two
    activations racing for one client username
"""

import threading

import pytest

from nightowl.core.exceptions import ActivationFailed, NotFoundError, ValidationError
from nightowl.models import db
from nightowl.models.auth import User
from nightowl.models.client import Client


LEAD = {"company": "TechCorp Inc", "services_needed": "Web Development"}


def _lead(n):
    return {**LEAD, "full_name": f"Lead {n}", "email": f"lead{n}@techcorp.com"}


class TestRoundTrip:
    def test_projects_round_trip_is_identical(self, core, active_project):
        core.lifecycle.advance_phase_status(active_project.id, "phase-1", "in_progress")
        second = core.lifecycle.add_client(_lead(2))

        before = core.store.get_records("projects")
        assert len(before) == 2
        core.store.save_records("projects", before)
        after = core.store.get_records("projects")

        assert after == before
        assert after[0]["phases"][0]["assigned_developers"] == before[0]["phases"][0]["assigned_developers"]
        assert second.id  # second lead's project is in the collection too

    def test_users_round_trip_keeps_secrets(self, core, manager, login):
        records = core.store.get_records("users")
        assert all("password_hash" in r for r in records)
        core.store.save_records("users", records)
        assert core.store.get_records("users") == records
        # the saved hash still verifies
        assert login("maria", "mgr-secret").username == "maria"

    def test_developer_project_ids_are_derived(self, core, active_project, developer):
        records = core.store.get_records("developers")
        assert records[0]["project_ids"] == [active_project.id]
        records[0]["project_ids"] = ["bogus"]
        core.store.save_records("developers", records)
        assert core.store.get_records("developers")[0]["project_ids"] == [active_project.id]


class TestReplaceSemantics:
    def test_order_follows_the_saved_list(self, core, owner):
        for n in range(3):
            core.lifecycle.add_client(_lead(n))
        records = core.store.get_records("clients")
        core.store.save_records("clients", list(reversed(records)))
        names = [r["full_name"] for r in core.store.get_records("clients")]
        assert names == ["Lead 2", "Lead 1", "Lead 0"]

    def test_absent_ids_are_deleted(self, core, owner):
        for n in range(3):
            with core.store.transaction("clients"):
                core.store.add("clients", Client(full_name=f"C{n}", email=f"c{n}@techcorp.com"))
        records = core.store.get_records("clients")
        core.store.save_records("clients", records[:1])
        assert core.store.count("clients") == 1

    def test_new_ids_are_inserted(self, core):
        core.store.save_records("clients", [
            {"id": "lead-a", "full_name": "A", "email": "a@techcorp.com"},
            {"id": "lead-b", "full_name": "B", "email": "b@techcorp.com", "status": "spam"},
        ])
        assert core.store.get("clients", "lead-b").status == "spam"
        assert [r["id"] for r in core.store.get_records("clients")] == ["lead-a", "lead-b"]


class TestValidation:
    def test_missing_id_rejected(self, core):
        with pytest.raises(ValidationError):
            core.store.save_records("clients", [{"full_name": "A", "email": "a@techcorp.com"}])

    def test_duplicate_id_rejected(self, core):
        rec = {"id": "x", "full_name": "A", "email": "a@techcorp.com"}
        with pytest.raises(ValidationError):
            core.store.save_records("clients", [rec, dict(rec)])

    def test_malformed_record_rejected_and_nothing_written(self, core):
        with pytest.raises(ValidationError):
            core.store.save_records("clients", [
                {"id": "ok", "full_name": "A", "email": "a@techcorp.com"},
                {"id": "bad"},
            ])
        assert core.store.count("clients") == 0

    def test_audit_log_is_append_only(self, core):
        with pytest.raises(ValidationError):
            core.store.save_records("audit_log", [])

    def test_unknown_collection(self, core):
        with pytest.raises(ValueError):
            core.store.get_records("nope")

    def test_get_unknown_id_raises_not_found(self, core):
        with pytest.raises(NotFoundError):
            core.store.get("projects", "missing")


class TestTransaction:
    def test_rollback_on_error(self, core):
        with pytest.raises(RuntimeError):
            with core.store.transaction("clients"):
                core.store.add("clients", Client(full_name="Gone", email="gone@techcorp.com"))
                raise RuntimeError("boom")
        assert core.store.count("clients") == 0

    def test_nested_blocks_commit_once(self, core):
        with core.store.transaction("clients", "projects"):
            core.store.add("clients", Client(full_name="Outer", email="o@techcorp.com"))
            with core.store.transaction("clients"):
                core.store.add("clients", Client(full_name="Inner", email="i@techcorp.com"))
        assert [r["full_name"] for r in core.store.get_records("clients")] == ["Outer", "Inner"]


def _start(app, target, results, key):
    """Run ``target`` in its own thread and app context; store "ok" or the exception."""

    def body():
        with app.app_context():
            try:
                target()
                results[key] = "ok"
            except Exception as exc:
                results[key] = exc

    thread = threading.Thread(target=body, daemon=True)
    thread.start()
    return thread


class TestConcurrency:
    def test_second_writer_on_same_collection_waits(self, app, core):
        holding, release = threading.Event(), threading.Event()
        events, results = [], {}

        def first():
            with core.store.transaction("clients"):
                events.append("first in")
                holding.set()
                release.wait(5)
                events.append("first out")

        def second():
            with core.store.transaction("clients"):
                events.append("second in")

        t1 = _start(app, first, results, "first")
        assert holding.wait(5)
        t2 = _start(app, second, results, "second")
        t2.join(0.3)
        assert t2.is_alive()
        assert events == ["first in"]

        release.set()
        t1.join(5)
        t2.join(5)
        assert events == ["first in", "first out", "second in"]
        assert results == {"first": "ok", "second": "ok"}

    def test_other_collection_does_not_wait(self, app, core):
        holding, release = threading.Event(), threading.Event()
        results = {}

        def first():
            with core.store.transaction("clients"):
                holding.set()
                release.wait(5)

        def other():
            with core.store.transaction("projects"):
                pass

        t1 = _start(app, first, results, "first")
        assert holding.wait(5)
        t2 = _start(app, other, results, "other")
        t2.join(5)
        try:
            assert not t2.is_alive()
            assert results["other"] == "ok"
        finally:
            release.set()
            t1.join(5)

    def test_racing_activations_for_one_username(self, app, core, owner, manager, lead_fields, monkeypatch):
        leads = [
            core.lifecycle.add_client({**lead_fields, "email": f"lead{n}@techcorp.com"})
            for n in range(2)
        ]
        first_id, second_id = (
            core.store.query("projects").filter_by(client_id=lead.id).one().id for lead in leads
        )
        manager_id = manager.id

        inside, release = threading.Event(), threading.Event()
        provision = core.directory.provision_client_account

        def slow_provision(credentials):
            # only the first caller pauses, while it holds the projects/users locks
            if not inside.is_set():
                inside.set()
                release.wait(5)
            return provision(credentials)

        monkeypatch.setattr(core.directory, "provision_client_account", slow_provision)

        def activate(project_id, secret):
            return lambda: core.lifecycle.activate_project(
                project_id, manager_id, 100, {"username": "john", "secret": secret},
            )

        results = {}
        t1 = _start(app, activate(first_id, "pw1"), results, "first")
        assert inside.wait(5)
        t2 = _start(app, activate(second_id, "pw2"), results, "second")
        t2.join(0.3)
        assert t2.is_alive()

        release.set()
        t1.join(5)
        t2.join(5)

        assert results["first"] == "ok"
        assert isinstance(results["second"], ActivationFailed)

        db.session.expire_all()
        assert core.store.get("projects", first_id).status == "active"
        second = core.store.get("projects", second_id)
        assert second.status == "pending"
        assert second.client_user_id is None
        assert User.query.filter_by(username="john").count() == 1
