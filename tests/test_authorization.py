"""
Role-scoped authorization tests.

Every role is exercised against entities inside and outside its scope:
  - manager: own projects / developers only
  - developer: projects where they hold a phase assignment
  - client: exactly one project, resolved through the portal account or email
  - anonymous: nothing
"""

import pytest

from nightowl.core.exceptions import AuthenticationRequired, Forbidden
from nightowl.services import authorization as authz

CREDS = {"username": "john", "secret": "pw1", "email": "john@techcorp.com", "name": "John Smith"}


@pytest.fixture()
def other_manager(core, owner, login):
    """Second manager with a project of their own. Leaves the owner logged in."""
    mike = core.directory.create_user({"role": "manager", "name": "Mike", "username": "mike", "secret": "m"})
    lead = core.lifecycle.add_client({"full_name": "Other Co", "email": "boss@other.co"})
    project = core.lifecycle.create_project_for_client(lead.id)
    core.lifecycle.activate_project(
        project.id, mike.id, 900, {"username": "otherclient", "secret": "oc", "email": "boss@other.co"},
    )
    return mike, project


class TestManagerScope:
    def test_sees_own_project(self, core, active_project, login):
        login("maria", "mgr-secret")
        assert core.views.project(active_project.id).id == active_project.id
        assert [p.id for p in core.views.projects()] == [active_project.id]

    def test_cannot_read_foreign_project(self, core, active_project, other_manager, login):
        _, foreign = other_manager
        login("maria", "mgr-secret")
        with pytest.raises(Forbidden):
            core.views.project(foreign.id)
        assert foreign.id not in [p.id for p in core.views.projects()]

    def test_cannot_mutate_foreign_project(self, core, active_project, other_manager, login):
        _, foreign = other_manager
        login("maria", "mgr-secret")
        with pytest.raises(Forbidden):
            core.lifecycle.advance_phase_status(foreign.id, "phase-1", "in_progress")
        with pytest.raises(Forbidden):
            core.lifecycle.deliver_project(foreign.id)
        assert core.store.get("projects", foreign.id).status == "active"

    def test_pending_projects_are_invisible(self, core, pending_project, manager, login):
        login("maria", "mgr-secret")
        assert core.views.projects() == []
        with pytest.raises(Forbidden):
            core.views.project(pending_project.id)

    def test_read_only_over_work_items(self, core, active_project, login):
        login("dan", "dev-secret")
        task = core.work.create_task(active_project.id, {"title": "Wireframes"})
        login("maria", "mgr-secret")
        assert [t.id for t in core.views.tasks()] == [task.id]
        with pytest.raises(Forbidden):
            core.work.update_task_status(task.id, "done")

    def test_developer_scope(self, core, developer, login):
        core.directory.create_user({"role": "manager", "name": "Mike", "username": "mike", "secret": "m"})
        login("mike", "m")
        assert core.views.developers() == []
        with pytest.raises(Forbidden):
            core.views.developer_projects(developer.id)


class TestDeveloperScope:
    def test_sees_assigned_project_only(self, core, active_project, other_manager, login):
        login("dan", "dev-secret")
        assert [p.id for p in core.views.projects()] == [active_project.id]
        with pytest.raises(Forbidden):
            core.views.project(other_manager[1].id)

    def test_cannot_write_on_unassigned_project(self, core, active_project, other_manager, login):
        login("dan", "dev-secret")
        with pytest.raises(Forbidden):
            core.work.record_progress(other_manager[1].id, None, "sneaky", 1)
        with pytest.raises(Forbidden):
            core.work.create_task(other_manager[1].id, {"title": "x"})

    def test_cannot_touch_lifecycle(self, core, active_project, login):
        login("dan", "dev-secret")
        with pytest.raises(Forbidden):
            core.lifecycle.advance_phase_status(active_project.id, "phase-1", "in_progress")
        with pytest.raises(Forbidden):
            core.lifecycle.create_project_for_client(active_project.client_id)

    def test_sees_only_self_in_developer_list(self, core, active_project, developer, login):
        login("dan", "dev-secret")
        assert [d.id for d in core.views.developers()] == [developer.id]
        assert [p.id for p in core.views.developer_projects(developer.id)] == [active_project.id]


class TestClientScope:
    def test_resolves_own_project(self, core, active_project, login):
        user = login("john", "pw1")
        assert authz.client_project_for(user).id == active_project.id
        assert core.views.client_project().id == active_project.id
        assert [p.id for p in core.views.projects()] == [active_project.id]

    def test_cannot_read_other_project(self, core, active_project, other_manager, login):
        login("john", "pw1")
        with pytest.raises(Forbidden):
            core.views.project(other_manager[1].id)

    def test_read_only_over_lifecycle(self, core, active_project, manager, login):
        login("john", "pw1")
        with pytest.raises(Forbidden):
            core.lifecycle.advance_phase_status(active_project.id, "phase-1", "completed")
        with pytest.raises(Forbidden):
            core.lifecycle.activate_project(active_project.id, manager.id, 1, CREDS)

    def test_sees_developers_on_own_project(self, core, active_project, developer, login):
        login("john", "pw1")
        assert [d.id for d in core.views.developers()] == [developer.id]

    def test_email_fallback_to_lead(self, core, owner, manager, login, lead_fields):
        # portal account of another project, but email matches this lead
        lead = core.lifecycle.add_client({**lead_fields, "email": "shared@techcorp.com"})
        project = core.lifecycle.create_project_for_client(lead.id)
        user = core.lifecycle.activate_project(
            project.id, manager.id, 10, {"username": "shared", "secret": "s", "email": "shared@techcorp.com"},
        ).client_user
        with core.store.transaction("projects"):
            project.client_user_id = None
        assert authz.client_project_for(user).id == project.id

    def test_client_without_project(self, core, active_project, login):
        user = login("john", "pw1")
        with core.store.transaction("projects", "users"):
            active_project.client_user_id = None
            user.email = None
        assert authz.client_project_for(user) is None


class TestAnonymous:
    def test_everything_requires_login(self, core, active_project):
        core.directory.logout()
        with pytest.raises(AuthenticationRequired):
            core.views.projects()
        with pytest.raises(AuthenticationRequired):
            core.lifecycle.deliver_project(active_project.id)
        with pytest.raises(AuthenticationRequired):
            core.work.update_task_status("any", "done")
        assert core.store.get("projects", active_project.id).status == "active"

    def test_pure_checks(self, active_project, developer):
        assert not authz.can_read_project(None, active_project)
        assert not authz.can_read_developer(None, developer)
        with pytest.raises(AuthenticationRequired):
            authz.require_role(None, "owner")
