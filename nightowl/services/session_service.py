"""
Session — the single process-wide "who is logged in" slot.

Holds at most one authenticated user plus the role derived from it. Empty at
process start, set by IdentityDirectory.authenticate, cleared by logout or
by ``invalidate`` (e.g. when the user behind it is deactivated). Every
component reads it before acting on behalf of a role.
"""

import logging
import threading
from datetime import datetime, timezone

from nightowl.models import db
from nightowl.models.auth import User

logger = logging.getLogger(__name__)


class SessionSlot:
    def __init__(self):
        self._lock = threading.Lock()
        self._user_id: str | None = None
        self._role: str | None = None
        self._started_at: datetime | None = None

    @property
    def user_id(self) -> str | None:
        return self._user_id

    @property
    def role(self) -> str | None:
        return self._role

    @property
    def is_authenticated(self) -> bool:
        return self._user_id is not None

    def establish(self, user: User) -> None:
        with self._lock:
            self._user_id = user.id
            self._role = user.role
            self._started_at = datetime.now(timezone.utc)

    def clear(self) -> str | None:
        """Empty the slot; returns the id that was logged in, if any."""
        with self._lock:
            previous = self._user_id
            self._user_id = None
            self._role = None
            self._started_at = None
            return previous

    def invalidate(self, reason: str) -> None:
        previous = self.clear()
        if previous:
            logger.info("Session for user %s invalidated: %s", previous, reason)

    def current_user(self) -> User | None:
        """The logged-in User, re-read from the store.

        A slot whose user vanished or was deactivated is invalidated here,
        so a stale role can never authorize anything.
        """
        user_id = self._user_id
        if user_id is None:
            return None
        user = db.session.get(User, user_id)
        if user is None or not user.is_active:
            self.invalidate("account no longer active")
            return None
        if user.role != self._role:
            self.invalidate("role changed")
            return None
        return user

    def snapshot(self) -> dict:
        return {
            "user_id": self._user_id,
            "role": self._role,
            "started_at": self._started_at.isoformat() if self._started_at else None,
        }
