"""Access Gate — which roles may create/delete shared classroom content.

``can_manage_shared_content`` is the pure predicate; mutation handlers call
``require_shared_content_manager`` before touching the store so a denied
caller can never write, whatever the client UI shows.
"""

from __future__ import annotations

import logging

from errors import AuthError, PermissionDeniedError
from models.entities import Role

logger = logging.getLogger(__name__)

_SHARED_CONTENT_MANAGERS = frozenset({Role.DELEGATE, Role.ADMIN})


def can_manage_shared_content(role: Role | str | None) -> bool:
    """True for delegate and admin, False for student and anything unknown."""
    if role is None:
        return False
    try:
        return Role(role) in _SHARED_CONTENT_MANAGERS
    except ValueError:
        return False


def require_session(session) -> None:
    """Raise AuthError when the operation has no authenticated session."""
    if session is None:
        raise AuthError("Not authenticated")


def require_shared_content_manager(session) -> None:
    """Guard for Announcement / ScheduleEntry mutations."""
    require_session(session)
    if not can_manage_shared_content(session.role):
        logger.info(
            "Denied shared-content mutation for account=%s role=%s",
            session.account_id, session.role,
        )
        raise PermissionDeniedError()
