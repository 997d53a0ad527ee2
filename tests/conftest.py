"""
Shared pytest fixtures for the NightOwl CRM test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse); empties
      the Session slot and bootstraps the owner account
    - core: the CrmCore container of the app
    - client: Flask test client (function-scoped)
    - login: helper logging a username/password in through the Identity Directory
    - owner / manager / developer: pre-created accounts
    - active_project: activated project with the developer on phase-1
"""

import pytest

from nightowl import create_app
from nightowl.core.container import get_core
from nightowl.models import db as _db

OWNER_USERNAME = "owner"
OWNER_PASSWORD = "owner123"
MANAGER_PASSWORD = "mgr-secret"
DEVELOPER_PASSWORD = "dev-secret"
CLIENT_USERNAME = "john"
CLIENT_PASSWORD = "pw1"

LEAD = {
    "full_name": "John Smith",
    "email": "john@techcorp.com",
    "phone": "+1-555-0123",
    "company": "TechCorp Inc",
    "services_needed": "Web Development, Mobile App",
    "project_description": "E-commerce platform with mobile app",
}


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, bootstrap owner, rollback + recreate tables after."""
    with app.app_context():
        core = get_core()
        core.session.clear()
        core.audit.failed_writes = 0
        core.bootstrap_owner(app.config)
        yield
        core.session.clear()
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def core():
    return get_core()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture()
def login(core):
    """Return a callable that authenticates and opens the session."""

    def _login(username, password):
        return core.directory.authenticate(username, password)

    return _login


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def owner(login):
    """The bootstrapped owner, logged in."""
    return login(OWNER_USERNAME, OWNER_PASSWORD)


@pytest.fixture()
def manager(core, owner, login):
    """A manager created by the owner. Leaves the owner logged in."""
    user = core.directory.create_user({
        "role": "manager",
        "name": "Maria Manager",
        "username": "maria",
        "secret": MANAGER_PASSWORD,
        "email": "maria@nightowlcrm.com",
    })
    return user


@pytest.fixture()
def developer(core, manager, login):
    """A developer added by the manager. Leaves the owner logged in."""
    login("maria", MANAGER_PASSWORD)
    dev = core.directory.add_developer({
        "name": "Dan Developer",
        "username": "dan",
        "secret": DEVELOPER_PASSWORD,
        "specialization": "UI",
    })
    login(OWNER_USERNAME, OWNER_PASSWORD)
    return dev


@pytest.fixture()
def pending_project(core, owner):
    """A lead with its pending project, created by the owner."""
    client_rec = core.lifecycle.add_client(LEAD)
    return core.lifecycle.create_project_for_client(client_rec.id)


@pytest.fixture()
def active_project(core, pending_project, manager, developer, login):
    """Project activated for the manager, client john/pw1, developer on phase-1.

    Leaves the owner logged in.
    """
    login(OWNER_USERNAME, OWNER_PASSWORD)
    project = core.lifecycle.activate_project(
        pending_project.id,
        manager.id,
        5000,
        {"username": CLIENT_USERNAME, "secret": CLIENT_PASSWORD, "email": "john@techcorp.com", "name": "John Smith"},
    )
    core.lifecycle.assign_developer_to_phase(project.id, "phase-1", developer.id)
    return project


@pytest.fixture()
def lead_fields():
    """Contact fields for a fresh manual lead."""
    return dict(LEAD)
