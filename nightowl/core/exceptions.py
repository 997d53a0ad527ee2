"""
Platform-wide exception hierarchy.

Every service raises one of these types; the application factory registers
one Flask error handler per type so blueprints never translate errors by
hand and the HTTP status for a failure kind is the same everywhere.

Usage:
    from nightowl.core.exceptions import NotFoundError, InvalidTransition

    raise NotFoundError(resource="Project", resource_id=project_id)
    raise InvalidTransition("Project", project.id, project.status, "active")
"""


class NotFoundError(Exception):
    """Raised when a referenced id does not exist.

    Args:
        resource: Human-readable entity name (e.g. "Project", "Developer").
        resource_id: The id that was looked up.
    """

    def __init__(self, resource: str, resource_id: str | int | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when well-formed input violates a business rule.

    Maps to HTTP 422.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown, keyed by field name.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would duplicate a unique value.

    Maps to HTTP 409.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class InvalidCredentials(Exception):
    """Username/secret pair did not resolve to an active user. Maps to 401."""

    def __init__(self, message: str = "Invalid credentials") -> None:
        super().__init__(message)


class DuplicateUsername(ConflictError):
    """An active user already holds the requested username."""

    def __init__(self, username: str) -> None:
        self.username = username
        super().__init__("User", "username", username)


class Forbidden(Exception):
    """The session role or ownership does not cover the requested entity. Maps to 403."""

    def __init__(self, message: str = "Forbidden", *, role: str | None = None, action: str | None = None) -> None:
        self.role = role
        self.action = action
        super().__init__(message)


class AuthenticationRequired(Forbidden):
    """No user is logged in. Maps to 401."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class InvalidTransition(ValidationError):
    """Illegal lifecycle state change (project, phase, issue)."""

    def __init__(self, resource: str, resource_id: str, current: str, target: str, reason: str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.current = current
        self.target = target
        msg = f"Cannot move {resource} {resource_id} from '{current}' to '{target}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, details={"current": current, "target": target})


class ActivationFailed(Exception):
    """Project activation was rejected; the project is still pending.

    Args:
        project_id: Project that stayed pending.
        reason: Which precondition or downstream step failed.
    """

    def __init__(self, project_id: str, reason: str) -> None:
        self.project_id = project_id
        self.reason = reason
        super().__init__(f"Activation of project {project_id} failed: {reason}")
