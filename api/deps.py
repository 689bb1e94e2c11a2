"""Shared FastAPI dependencies — session lookup from the bearer token."""

from __future__ import annotations

from fastapi import Depends, Header, Query

from errors import AuthError
from services.live_query import LiveQueryHub, get_hub
from services.session_store import Session, get_session_store


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def optional_session(
    authorization: str | None = Header(default=None),
    token: str | None = Query(default=None, description="Session token for EventSource clients"),
) -> Session | None:
    """Session for the ``Authorization: Bearer`` header or ``?token=``, else None."""
    value = _bearer_token(authorization) or token
    if not value:
        return None
    return await get_session_store().get(value)


async def current_session(session: Session | None = Depends(optional_session)) -> Session:
    if session is None:
        raise AuthError("Not authenticated")
    return session


def hub_dependency() -> LiveQueryHub:
    return get_hub()
