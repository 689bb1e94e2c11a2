"""Session store — explicit login sessions passed to every operation.

A :class:`Session` is created at login/registration, looked up from the
bearer token on each request, and destroyed at logout.  Sessions are never
shared process-wide: each request carries its own.

Provides an abstract interface with an in-memory implementation and a Redis
implementation for multi-worker deployments.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from abc import ABC, abstractmethod

from pydantic import BaseModel, Field

from models.entities import Account, Role

logger = logging.getLogger(__name__)


# ── Data Models ──────────────────────────────────────────────


class Session(BaseModel):
    """Server-side identity for one login."""

    token: str
    account_id: str
    email: str
    name: str
    role: Role
    created_at: float = Field(default_factory=time.time)
    last_seen: float = Field(default_factory=time.time)

    @classmethod
    def for_account(cls, account: Account) -> Session:
        return cls(
            token=generate_session_token(),
            account_id=account.id,
            email=account.email,
            name=account.name,
            role=account.role,
        )

    def touch(self) -> None:
        self.last_seen = time.time()


def generate_session_token() -> str:
    """Opaque bearer token, e.g. ``sess-Xy3...``."""
    return f"sess-{secrets.token_urlsafe(24)}"


# ── Abstract Interface ───────────────────────────────────────


class SessionStore(ABC):
    """Abstract session store — implement for different backends."""

    @abstractmethod
    async def get(self, token: str) -> Session | None:
        """Retrieve a session by token.  Returns None if not found or expired."""
        ...

    @abstractmethod
    async def save(self, session: Session) -> None:
        ...

    @abstractmethod
    async def delete(self, token: str) -> None:
        """Remove a session (logout).  Unknown tokens are ignored."""
        ...

    @abstractmethod
    async def cleanup_expired(self) -> int:
        """Remove all expired sessions.  Returns count removed."""
        ...


# ── In-Memory Implementation ────────────────────────────────


class InMemorySessionStore(SessionStore):
    """In-memory store with sliding TTL expiration."""

    def __init__(self, ttl_seconds: int = 43200):
        self._store: dict[str, Session] = {}
        self._ttl = ttl_seconds

    def _is_expired(self, session: Session) -> bool:
        return (time.time() - session.last_seen) > self._ttl

    async def get(self, token: str) -> Session | None:
        session = self._store.get(token)
        if session is None:
            return None
        if self._is_expired(session):
            del self._store[token]
            logger.debug("Session expired for account %s", session.account_id)
            return None
        session.touch()
        return session

    async def save(self, session: Session) -> None:
        self._store[session.token] = session

    async def delete(self, token: str) -> None:
        self._store.pop(token, None)

    async def cleanup_expired(self) -> int:
        expired = [t for t, s in self._store.items() if self._is_expired(s)]
        for token in expired:
            del self._store[token]
        if expired:
            logger.info("Cleaned up %d expired sessions", len(expired))
        return len(expired)

    @property
    def size(self) -> int:
        """Number of sessions currently stored (may include expired)."""
        return len(self._store)


# ── Redis Implementation ─────────────────────────────────────


class RedisSessionStore(SessionStore):
    """Redis-backed store; Redis TTL handles expiry, refreshed on access."""

    def __init__(self, redis_url: str, ttl_seconds: int = 43200, key_prefix: str = "mc:"):
        import redis.asyncio as aioredis

        self._redis = aioredis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=10,
            socket_timeout=10,
        )
        self._ttl = ttl_seconds
        self._prefix = f"{key_prefix}session:"

    def _key(self, token: str) -> str:
        return f"{self._prefix}{token}"

    async def get(self, token: str) -> Session | None:
        data = await self._redis.get(self._key(token))
        if data is None:
            return None
        try:
            session = Session.model_validate_json(data)
        except Exception:
            logger.warning("Failed to deserialize session for token prefix %s", token[:10])
            return None
        await self._redis.expire(self._key(token), self._ttl)
        return session

    async def save(self, session: Session) -> None:
        await self._redis.set(self._key(session.token), session.model_dump_json(), ex=self._ttl)

    async def delete(self, token: str) -> None:
        await self._redis.delete(self._key(token))

    async def cleanup_expired(self) -> int:
        return 0

    async def close(self) -> None:
        await self._redis.aclose()


# ── Module-level Singleton ───────────────────────────────────

_store: SessionStore | None = None


def get_session_store() -> SessionStore:
    """Get the singleton session store instance."""
    global _store
    if _store is None:
        from config.settings import get_settings

        settings = get_settings()
        ttl = settings.session_ttl
        if settings.entity_store_type == "redis" and settings.redis_url:
            _store = RedisSessionStore(
                redis_url=settings.redis_url,
                ttl_seconds=ttl,
                key_prefix=settings.redis_key_prefix,
            )
            logger.info("Initialized RedisSessionStore (TTL=%ds)", ttl)
        else:
            _store = InMemorySessionStore(ttl_seconds=ttl)
            logger.info("Initialized InMemorySessionStore (TTL=%ds)", ttl)
    return _store


# ── Background Cleanup Task ──────────────────────────────────


async def periodic_cleanup(interval_seconds: int = 300) -> None:
    """Background task that periodically drops expired sessions.

    Started as an ``asyncio.Task`` in the FastAPI lifespan.
    """
    store = get_session_store()
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await store.cleanup_expired()
        except Exception:
            logger.exception("Session store cleanup failed")
