"""
CRM core container — the component instances one application runs with.

Every component receives its collaborators explicitly; the only shared
mutable state is the single Session slot held here. The application
factory builds one container per app and stores it under
``app.extensions["nightowl"]``.

Usage:
    from nightowl.core.container import get_core

    core = get_core()
    core.directory.authenticate("owner", "owner123")
    core.lifecycle.activate_project(project_id, manager_id, 5000, creds)
"""

import logging

from flask import current_app

from nightowl.services.audit_service import AuditTrail
from nightowl.services.identity_service import IdentityDirectory
from nightowl.services.messaging import MessageCenter
from nightowl.services.project_lifecycle import ProjectLifecycle
from nightowl.services.record_store import RecordStore
from nightowl.services.session_service import SessionSlot
from nightowl.services.views import ScopedViews
from nightowl.services.work_service import WorkItems

logger = logging.getLogger(__name__)

EXTENSION_KEY = "nightowl"


class CrmCore:
    def __init__(self, *, audit_max_entries: int = 1000, bcrypt_rounds: int = 12):
        self.store = RecordStore()
        self.session = SessionSlot()
        self.audit = AuditTrail(self.store, self.session, max_entries=audit_max_entries)
        self.directory = IdentityDirectory(self.store, self.session, self.audit, bcrypt_rounds=bcrypt_rounds)
        self.lifecycle = ProjectLifecycle(self.store, self.directory, self.audit)
        self.work = WorkItems(self.store, self.session, self.audit)
        self.messages = MessageCenter(self.store, self.session, self.audit)
        self.views = ScopedViews(self.store, self.session)

    def bootstrap_owner(self, config) -> None:
        self.directory.ensure_owner(
            config["OWNER_USERNAME"],
            config["OWNER_PASSWORD"],
            name=config.get("OWNER_NAME"),
            email=config.get("OWNER_EMAIL"),
        )


def init_core(app) -> CrmCore:
    core = CrmCore(
        audit_max_entries=app.config.get("AUDIT_LOG_MAX_ENTRIES", 1000),
        bcrypt_rounds=app.config.get("BCRYPT_ROUNDS", 12),
    )
    app.extensions[EXTENSION_KEY] = core
    return core


def get_core() -> CrmCore:
    return current_app.extensions[EXTENSION_KEY]
