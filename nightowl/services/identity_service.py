"""
Identity Directory — user accounts, credential resolution, login/logout.

Owns the ``users`` collection. Secrets are stored as bcrypt hashes and only
ever compared through ``verify_password``. Active usernames are unique
across every role.

Who may create what:
    owner    → manager
    manager  → developer (always paired with a Developer record)
    activation flow → client (see provision_client_account)
    bootstrap → the sole owner (ensure_owner)
"""

import logging

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import select

from nightowl.core.exceptions import (
    DuplicateUsername,
    Forbidden,
    InvalidCredentials,
    NotFoundError,
    ValidationError,
)
from nightowl.models import _utcnow
from nightowl.models.auth import ROLES, User
from nightowl.models.project import Project
from nightowl.models.team import Developer
from nightowl.services import authorization as authz
from nightowl.utils.crypto import hash_password, verify_password
from nightowl.utils.helpers import clean_str, require_flag

logger = logging.getLogger(__name__)


def normalize_email(email: str | None) -> str | None:
    """Validated, normalized email, or None when blank."""
    email = clean_str(email)
    if not email:
        return None
    try:
        return validate_email(email, check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email: {e}", details={"email": str(e)}) from e


def _secret_from(draft: dict) -> str | None:
    # "password" is accepted as an alias for API callers
    secret = draft.get("secret")
    if secret is None:
        secret = draft.get("password")
    return secret


class IdentityDirectory:
    def __init__(self, store, session_slot, audit, *, bcrypt_rounds: int = 12):
        self.store = store
        self.session = session_slot
        self.audit = audit
        self.bcrypt_rounds = bcrypt_rounds

    # ═══════════════════════════════════════════════════════════════
    # Session
    # ═══════════════════════════════════════════════════════════════

    def authenticate(self, username: str, secret: str) -> User:
        """Resolve a username/secret pair to an active user and open the session."""
        username = clean_str(username)
        if not username or not secret:
            raise InvalidCredentials()

        user = self._match_active(username, secret)
        if user is None:
            self._check_portal_link(username)
            logger.info("Failed login for username=%s", username)
            raise InvalidCredentials()

        with self.store.transaction("users"):
            user.last_login_at = _utcnow()
        self.session.establish(user)
        logger.info("User %s (%s) logged in", user.username, user.role)
        self.audit.record("login", f"{user.name} logged in", actor=user)
        return user

    def _match_active(self, username: str, secret: str) -> User | None:
        candidates = (
            User.query.filter_by(username=username, is_active=True)
            .order_by(User.seq).all()
        )
        for candidate in candidates:
            if verify_password(secret, candidate.password_hash):
                return candidate
        return None

    def _check_portal_link(self, username: str) -> None:
        """Flag an active project whose portal account no longer resolves.

        Portal access always goes through the linked User; a project whose
        linked account is missing or inactive is a data fault, not a second
        way in.
        """
        linked = (
            Project.query.join(User, Project.client_user_id == User.id)
            .filter(Project.status == "active", User.username == username)
            .first()
        )
        if linked is not None and not (linked.client_user.is_active and linked.client_user.role == "client"):
            logger.warning(
                "Project %s links client account '%s' which is inactive or not a client; login refused",
                linked.id, username,
            )

    def current_session(self) -> User | None:
        return self.session.current_user()

    def require_user(self) -> User:
        return authz.require_user(self.session.current_user())

    def logout(self) -> None:
        """Close the session. A no-op when nobody is logged in."""
        user = self.session.current_user()
        if user is None:
            self.session.clear()
            return
        self.audit.record("logout", f"{user.name} logged out", actor=user)
        self.session.clear()
        logger.info("User %s logged out", user.username)

    # ═══════════════════════════════════════════════════════════════
    # Account creation
    # ═══════════════════════════════════════════════════════════════

    def create_user(self, draft: dict) -> User:
        """Create a manager (by owner) or developer (by manager) account."""
        role = draft.get("role")
        if role not in ROLES:
            raise ValidationError(f"Unknown role: {role!r}", details={"role": role})
        actor = authz.check_can_create(self.session.current_user(), role)

        if role == "developer":
            developer = self.add_developer(draft)
            return developer.user

        with self.store.transaction("users"):
            user = self._provision(draft, role)
        self.audit.record(
            "user_created",
            f"{actor.name} created {role} account '{user.username}'",
            diff={"user_id": user.id, "role": role},
        )
        return user

    def add_developer(self, fields: dict) -> Developer:
        """Create a Developer and its developer-role login in one step (manager only)."""
        manager = authz.require_role(self.session.current_user(), "manager", action="add developers")
        specialization = clean_str(fields.get("specialization")) or "general"

        with self.store.transaction("users", "developers"):
            user = self._provision(fields, "developer")
            developer = self.store.add("developers", Developer(
                user_id=user.id,
                name=user.name,
                specialization=specialization,
                manager_id=manager.id,
                is_active=user.is_active,
            ))
        self.audit.record(
            "developer_added",
            f"{manager.name} added developer {developer.name} ({specialization})",
            diff={"developer_id": developer.id, "user_id": user.id},
        )
        return developer

    def _provision(self, draft: dict, role: str) -> User:
        """Insert a user row inside the caller's transaction."""
        username = clean_str(draft.get("username"))
        secret = _secret_from(draft)
        if not username:
            raise ValidationError("username is required", details={"username": "required"})
        if not secret:
            raise ValidationError("secret is required", details={"secret": "required"})
        email = normalize_email(draft.get("email"))
        try:
            is_active = require_flag(draft.get("is_active", True), "is_active")
        except ValueError as exc:
            raise ValidationError(str(exc), details={"is_active": draft.get("is_active")}) from exc

        if is_active and User.query.filter_by(username=username, is_active=True).first():
            raise DuplicateUsername(username)

        user = User(
            username=username,
            password_hash=hash_password(secret, rounds=self.bcrypt_rounds),
            role=role,
            name=clean_str(draft.get("name")) or username,
            email=email,
            is_active=is_active,
        )
        return self.store.add("users", user)

    def provision_client_account(self, credentials: dict) -> tuple[User, bool]:
        """Find or create the client login for a project activation.

        Returns ``(user, created)``. An active client account with the same
        username and secret is reused; any other holder of the username
        raises DuplicateUsername. Runs inside the caller's transaction.
        """
        username = clean_str(credentials.get("username"))
        secret = _secret_from(credentials)
        existing = User.query.filter_by(username=username, is_active=True).first()
        if existing is not None:
            if existing.role == "client" and verify_password(secret or "", existing.password_hash):
                return existing, False
            raise DuplicateUsername(username)
        user = self._provision({**credentials, "is_active": True}, "client")
        return user, True

    def ensure_owner(self, username: str, secret: str, *, name: str | None = None, email: str | None = None) -> User:
        """Create the owner account once; later calls return the existing owner."""
        owner = User.query.filter_by(role="owner").order_by(User.seq).first()
        if owner is not None:
            return owner
        with self.store.transaction("users"):
            owner = self._provision(
                {"username": username, "secret": secret, "name": name or "Owner", "email": email},
                "owner",
            )
        logger.info("Bootstrapped owner account '%s'", owner.username)
        self.audit.record("user_created", f"Owner account '{owner.username}' bootstrapped", system=True)
        return owner

    # ═══════════════════════════════════════════════════════════════
    # Queries & maintenance
    # ═══════════════════════════════════════════════════════════════

    def list_users_by_role(self, role: str, *, include_inactive: bool = False) -> list[User]:
        """Owner sees every role; a manager sees only their own developers."""
        if role not in ROLES:
            raise ValidationError(f"Unknown role: {role!r}", details={"role": role})
        user = authz.require_role(self.session.current_user(), "owner", "manager", action="list users")

        q = self.store.query("users").filter(User.role == role)
        if user.role == "manager":
            if role != "developer":
                raise Forbidden(
                    f"Managers may only list developers, not {role}s", role=user.role, action="list_users",
                )
            own = select(Developer.user_id).where(Developer.manager_id == user.id)
            q = q.filter(User.id.in_(own))
        if not include_inactive:
            q = q.filter(User.is_active.is_(True))
        return q.all()

    def deactivate_user(self, user_id: str) -> User:
        """Flip a user inactive. Owner: anyone but themselves; manager: own developers."""
        actor = authz.require_role(self.session.current_user(), "owner", "manager", action="deactivate users")
        target = self.store.get("users", user_id)
        developer = Developer.query.filter_by(user_id=target.id).first()

        if target.id == actor.id:
            raise ValidationError("You cannot deactivate your own account")
        if actor.role == "manager":
            if developer is None:
                raise Forbidden("Managers may only deactivate their developers", role=actor.role, action="deactivate_user")
            authz.check_developer_manage(actor, developer, "deactivate_user")

        if not target.is_active:
            return target
        with self.store.transaction("users", "developers"):
            target.is_active = False
            if developer is not None:
                developer.is_active = False
        self.audit.record(
            "user_deactivated",
            f"{actor.name} deactivated {target.role} account '{target.username}'",
            diff={"user_id": target.id},
        )
        return target

    def get_user(self, user_id: str) -> User:
        user = self.store.find("users", user_id)
        if user is None:
            raise NotFoundError(resource="User", resource_id=user_id)
        return user
