"""Tests for the access gate predicate and its enforcing guard."""

import pytest

from errors import AuthError, PermissionDeniedError
from models.entities import Role
from services.access_gate import (
    can_manage_shared_content,
    require_session,
    require_shared_content_manager,
)
from services.session_store import Session


def _session(role: Role) -> Session:
    return Session(token="sess-x", account_id="acc-1", email="x@x.fr", name="X", role=role)


@pytest.mark.parametrize(
    "role,expected",
    [
        (Role.STUDENT, False),
        (Role.DELEGATE, True),
        (Role.ADMIN, True),
        ("delegate", True),
        ("student", False),
        ("superuser", False),
        (None, False),
    ],
)
def test_can_manage_shared_content(role, expected):
    assert can_manage_shared_content(role) is expected


def test_require_session_rejects_anonymous():
    with pytest.raises(AuthError, match="Not authenticated"):
        require_session(None)


def test_guard_denies_student():
    with pytest.raises(PermissionDeniedError):
        require_shared_content_manager(_session(Role.STUDENT))


def test_guard_requires_session_first():
    with pytest.raises(AuthError):
        require_shared_content_manager(None)


@pytest.mark.parametrize("role", [Role.DELEGATE, Role.ADMIN])
def test_guard_allows_privileged(role):
    require_shared_content_manager(_session(role))
