"""Reactive Query/Mutation Layer.

Named operations register here via ``@register_query(depends_on=[...])`` and
``@register_mutation()``; handlers are plain async functions with the
signature ``handler(tx, session, **args)`` where ``tx`` is an open
:class:`~services.entity_store.Transaction` and ``session`` the caller's
:class:`~services.session_store.Session` (or None when anonymous).

Design:
- Every query and mutation runs inside one store transaction, so it sees a
  consistent snapshot and mutations are all-or-nothing.
- ``LiveQueryHub.subscribe`` evaluates a query immediately and re-evaluates
  it whenever a committed change touches one of its dependency kinds.
- Re-evaluations per subscription are coalesced: while one is in flight,
  further changes only mark the subscription dirty and a single follow-up
  evaluation runs afterwards.
- Each subscription is a single-slot mailbox: an unconsumed snapshot is
  overwritten by a newer one, and a snapshot read at an older store version
  than the last accepted one is dropped.  A slow subscriber therefore only
  ever observes the latest consistent state.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Sequence

from errors import ClassroomError, NotFoundError
from services.entity_store import ChangeSet, EntityStore, get_entity_store
from services.metrics import get_metrics_collector

logger = logging.getLogger(__name__)

QUERY = "query"
MUTATION = "mutation"


# ── Registry ─────────────────────────────────────────────────


@dataclass
class RegisteredOperation:
    """Metadata for a registered query or mutation."""

    name: str
    func: Callable[..., Awaitable[Any]]
    kind: str
    depends_on: frozenset[str] = frozenset()
    description: str = ""


# Module-level registry
_registry: dict[str, RegisteredOperation] = {}


def _register(name: str, func, kind: str, depends_on: Sequence[str] = ()) -> None:
    if name in _registry and _registry[name].func is not func:
        logger.warning("Re-registering %s %r", kind, name)
    _registry[name] = RegisteredOperation(
        name=name,
        func=func,
        kind=kind,
        depends_on=frozenset(depends_on),
        description=(func.__doc__ or "").strip().split("\n")[0],
    )


def register_query(name: str | None = None, *, depends_on: Sequence[str]):
    """Decorator registering a live query.

    *depends_on* lists the entity kinds whose changes invalidate the result.

    Usage::

        @register_query(depends_on=[MESSAGES, ACCOUNTS])
        async def list_messages(tx, session) -> list[ChatMessage]:
            ...
    """
    if not depends_on:
        raise ValueError("A live query must declare at least one dependency kind")

    def decorator(func):
        _register(name or func.__name__, func, QUERY, depends_on)
        return func

    return decorator


def register_mutation(name: str | None = None):
    """Decorator registering a one-shot transactional mutation."""

    def decorator(func):
        _register(name or func.__name__, func, MUTATION)
        return func

    return decorator


def get_operation(name: str, kind: str | None = None) -> RegisteredOperation:
    op = _registry.get(name)
    if op is None or (kind is not None and op.kind != kind):
        raise NotFoundError(kind or "operation", name)
    return op


def get_operation_names(kind: str | None = None) -> list[str]:
    return [op.name for op in _registry.values() if kind is None or op.kind == kind]


# ── Subscriptions ────────────────────────────────────────────


@dataclass(frozen=True)
class Snapshot:
    """Whole result of a query as of store ``version`` (or the error it raised)."""

    query: str
    version: int
    result: Any = None
    error: ClassroomError | None = None


class SubscriptionClosed(Exception):
    """Raised by :meth:`Subscription.next` once the subscription is closed."""


class Subscription:
    """Live view of one named query with its parameters.

    Consume with ``await sub.next()`` or ``async for snapshot in sub``.
    """

    def __init__(self, hub: LiveQueryHub, operation: RegisteredOperation, session, params: dict):
        self.id = f"sub-{uuid.uuid4().hex[:10]}"
        self.query = operation.name
        self.operation = operation
        self.session = session
        self.params = params
        self._hub = hub
        self._version = -1
        self._latest: Snapshot | None = None
        self._pending: Snapshot | None = None
        self._ready = asyncio.Event()
        self._closed = False
        self._dirty = False
        self._task: asyncio.Task | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def latest(self) -> Snapshot | None:
        """Most recent accepted snapshot, consumed or not."""
        return self._latest

    def offer(self, snapshot: Snapshot) -> bool:
        """Put *snapshot* in the mailbox unless it is stale.  Returns True if accepted."""
        if self._closed or snapshot.version < self._version:
            return False
        if snapshot.version == self._version and snapshot.error is None:
            return False
        self._version = snapshot.version
        self._latest = snapshot
        self._pending = snapshot
        self._ready.set()
        return True

    async def next(self, timeout: float | None = None) -> Snapshot:
        """Wait for the next undelivered snapshot.

        Raises :class:`SubscriptionClosed` after :meth:`close`, and
        ``TimeoutError`` if *timeout* elapses first.
        """
        while True:
            if self._pending is not None:
                snapshot, self._pending = self._pending, None
                self._ready.clear()
                return snapshot
            if self._closed:
                raise SubscriptionClosed(self.id)
            if timeout is None:
                await self._ready.wait()
            else:
                await asyncio.wait_for(self._ready.wait(), timeout)

    def __aiter__(self):
        return self

    async def __anext__(self) -> Snapshot:
        try:
            return await self.next()
        except SubscriptionClosed:
            raise StopAsyncIteration from None

    def close(self) -> None:
        """Stop further pushes.  Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._pending = None
        self._ready.set()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._hub._discard(self)


# ── Hub ──────────────────────────────────────────────────────


class LiveQueryHub:
    """Runs named operations against the store and keeps subscriptions fresh."""

    def __init__(self, store: EntityStore):
        self._store = store
        self._subscriptions: dict[str, Subscription] = {}
        self._metrics = get_metrics_collector()
        store.add_listener(self._on_change)

    @property
    def store(self) -> EntityStore:
        return self._store

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    # ── One-shot calls ──

    async def query(self, name: str, session=None, /, **params: Any) -> Any:
        """Evaluate a query once and return its result."""
        result, _ = await self._run(get_operation(name, QUERY), session, params)
        return result

    async def mutate(self, name: str, session=None, /, **args: Any) -> Any:
        """Run a mutation in one transaction (at-most-once, no retry)."""
        result, _ = await self._run(get_operation(name, MUTATION), session, args)
        return result

    async def _run(self, op: RegisteredOperation, session, args: dict) -> tuple[Any, int]:
        start = time.monotonic()
        status = "ok"
        try:
            async with self._store.transaction() as tx:
                result = await op.func(tx, session, **args)
                version = tx.version
            return result, version
        except ClassroomError as exc:
            status = exc.code
            raise
        except Exception:
            status = "error"
            logger.exception("%s %s raised an unhandled exception", op.kind, op.name)
            raise
        finally:
            self._metrics.record_call(
                operation=op.name,
                category=op.kind,
                status=status,
                latency_ms=(time.monotonic() - start) * 1000,
            )

    # ── Subscriptions ──

    async def subscribe(self, name: str, session=None, /, **params: Any) -> Subscription:
        """Open a live subscription; the first snapshot is available immediately.

        Errors of the initial evaluation (e.g. not authenticated) propagate
        to the caller and no subscription is left behind.
        """
        op = get_operation(name, QUERY)
        sub = Subscription(self, op, session, params)
        # Register before evaluating so a concurrent commit is not missed.
        self._subscriptions[sub.id] = sub
        try:
            result, version = await self._run(op, session, params)
        except BaseException:
            self._subscriptions.pop(sub.id, None)
            sub._closed = True
            raise
        sub.offer(Snapshot(op.name, version, result))
        self._metrics.subscription_opened()
        logger.debug("Opened subscription %s on %s", sub.id, op.name)
        return sub

    def unsubscribe(self, subscription_id: str) -> None:
        sub = self._subscriptions.get(subscription_id)
        if sub is not None:
            sub.close()

    def _discard(self, sub: Subscription) -> None:
        if self._subscriptions.pop(sub.id, None) is not None:
            self._metrics.subscription_closed()
            logger.debug("Closed subscription %s on %s", sub.id, sub.query)

    async def _on_change(self, change: ChangeSet) -> None:
        for sub in list(self._subscriptions.values()):
            if sub.operation.depends_on & change.kinds:
                self._schedule_refresh(sub)

    def _schedule_refresh(self, sub: Subscription) -> None:
        if sub.closed:
            return
        if sub._task is not None and not sub._task.done():
            sub._dirty = True
            return
        sub._task = asyncio.create_task(self._refresh(sub))

    async def _refresh(self, sub: Subscription) -> None:
        while not sub.closed:
            sub._dirty = False
            try:
                result, version = await self._run(sub.operation, sub.session, sub.params)
                snapshot = Snapshot(sub.query, version, result)
            except ClassroomError as exc:
                snapshot = Snapshot(sub.query, await self._store.current_version(), error=exc)
            except Exception:
                # Already logged by _run; keep the subscription alive.
                snapshot = Snapshot(
                    sub.query,
                    await self._store.current_version(),
                    error=ClassroomError("Live query failed"),
                )
            if sub.offer(snapshot):
                self._metrics.snapshot_pushed()
            if not sub._dirty:
                break

    async def settle(self) -> None:
        """Wait until no refresh is in flight (tests and graceful shutdown)."""
        while True:
            tasks = [
                s._task for s in self._subscriptions.values()
                if s._task is not None and not s._task.done()
            ]
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)

    async def close(self) -> None:
        """Close every subscription and detach from the store."""
        for sub in list(self._subscriptions.values()):
            sub.close()
        self._store.remove_listener(self._on_change)


# ── Module-level Singleton ───────────────────────────────────

_hub: LiveQueryHub | None = None


def get_hub() -> LiveQueryHub:
    """Get the singleton hub bound to the singleton entity store."""
    global _hub
    if _hub is None:
        import services.classroom  # noqa: F401  registers operations

        _hub = LiveQueryHub(get_entity_store())
    return _hub
