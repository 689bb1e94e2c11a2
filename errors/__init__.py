"""Custom exception hierarchy for Mandarin Connect."""

from errors.exceptions import (
    AuthError,
    ClassroomError,
    ConflictError,
    GenerationError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)

__all__ = [
    "AuthError",
    "ClassroomError",
    "ConflictError",
    "GenerationError",
    "NotFoundError",
    "PermissionDeniedError",
    "ValidationError",
]
