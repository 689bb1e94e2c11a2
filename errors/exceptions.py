"""Domain-specific exceptions for Mandarin Connect.

Every failure surfaced to a caller is a :class:`ClassroomError` subclass so
the API layer can map it to an HTTP status with a single exception handler,
and the live-query layer can push it to subscribers unchanged.
"""

from __future__ import annotations


class ClassroomError(Exception):
    """Base class for all user-facing failures."""

    status_code: int = 400
    code: str = "error"
    default_message: str = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ClassroomError):
    """Malformed or missing required input — rejected before any write."""

    status_code = 422
    code = "validation_error"
    default_message = "Invalid input"


class ConflictError(ClassroomError):
    """A uniqueness constraint would be violated (e.g. duplicate email)."""

    status_code = 409
    code = "conflict"
    default_message = "Record already exists"


class AuthError(ClassroomError):
    """Credential mismatch or unknown principal.

    The message never says which of the two happened.
    """

    status_code = 401
    code = "auth_error"
    default_message = "Invalid credentials"


class PermissionDeniedError(ClassroomError):
    """Authenticated, but the role may not perform this mutation."""

    status_code = 403
    code = "permission_denied"
    default_message = "Your role cannot manage shared content"


class NotFoundError(ClassroomError):
    """A referenced record does not exist."""

    status_code = 404
    code = "not_found"
    default_message = "Record not found"

    def __init__(self, kind: str = "record", record_id: str = "") -> None:
        self.kind = kind
        self.record_id = record_id
        message = f"{kind} '{record_id}' not found" if record_id else f"{kind} not found"
        super().__init__(message)


class GenerationError(ClassroomError):
    """The generative capability failed or broke its output contract."""

    status_code = 502
    code = "generation_error"
    default_message = "AI generation failed"
