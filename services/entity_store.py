"""Entity Store — durable, indexed record storage for the classroom kinds.

Provides an abstract transactional interface with an in-memory
implementation and a Redis implementation.  Records are plain dicts carrying
a system-assigned ``id`` and an insertion sequence ``seq`` (the store's commit
order), plus the kind's own fields.

Every committed transaction that wrote something bumps a monotonic
``version`` and notifies change listeners with the kinds it touched; the
live-query layer uses that to decide which subscriptions to refresh.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
import uuid
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Iterator

from errors import ConflictError
from models.entities import ACCOUNTS, ANNOUNCEMENTS, MESSAGES, QUIZ_RESULTS, SCHEDULE

logger = logging.getLogger(__name__)


# ── Schema ───────────────────────────────────────────────────


@dataclass(frozen=True)
class KindSpec:
    """Declared shape of one entity kind: id prefix and unique indexes."""

    name: str
    id_prefix: str
    indexes: tuple[str, ...] = ()


SCHEMA: dict[str, KindSpec] = {
    ACCOUNTS: KindSpec(ACCOUNTS, "acc", indexes=("email",)),
    MESSAGES: KindSpec(MESSAGES, "msg"),
    ANNOUNCEMENTS: KindSpec(ANNOUNCEMENTS, "ann"),
    SCHEDULE: KindSpec(SCHEDULE, "sch"),
    QUIZ_RESULTS: KindSpec(QUIZ_RESULTS, "qr", indexes=("account_id",)),
}


def _spec(kind: str) -> KindSpec:
    try:
        return SCHEMA[kind]
    except KeyError:
        raise ValueError(f"Unknown entity kind: {kind!r}") from None


def _check_index(spec: KindSpec, field: str) -> None:
    if field not in spec.indexes:
        raise ValueError(f"{spec.name} has no index on {field!r}")


def new_record_id(kind: str) -> str:
    """Generate a new record ID, e.g. ``msg-1a2b3c4d5e6f``."""
    return f"{_spec(kind).id_prefix}-{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class ChangeSet:
    """Emitted after a committed write: new store version + kinds touched."""

    version: int
    kinds: frozenset[str]


ChangeListener = Callable[[ChangeSet], Awaitable[None]]


# ── Abstract Interface ───────────────────────────────────────


class Transaction(ABC):
    """Handle for reads and writes inside one serializable transaction.

    ``version`` is the committed store version the transaction started from;
    every read inside it reflects all writes committed up to that version.
    """

    version: int = 0

    def __init__(self) -> None:
        self.touched: set[str] = set()

    @abstractmethod
    async def get(self, kind: str, record_id: str) -> dict[str, Any] | None:
        """Point lookup by id.  Returns None if absent."""
        ...

    @abstractmethod
    async def find_one(self, kind: str, field: str, value: Any) -> dict[str, Any] | None:
        """Lookup through a declared unique index."""
        ...

    @abstractmethod
    async def scan(
        self, kind: str, *, descending: bool = False, limit: int | None = None
    ) -> list[dict[str, Any]]:
        """All records of *kind* in insertion order (newest first if *descending*)."""
        ...

    @abstractmethod
    async def insert(self, kind: str, doc: dict[str, Any]) -> str:
        """Insert a record and return its new id.  Raises ConflictError on index clash."""
        ...

    @abstractmethod
    async def delete(self, kind: str, record_id: str) -> bool:
        """Delete by id.  Deleting a missing id is a no-op returning False."""
        ...

    async def replace(self, kind: str, field: str, value: Any, doc: dict[str, Any]) -> str:
        """Atomically supersede the record keyed by ``field == value``.

        Delete-then-insert inside the same transaction, so no reader ever
        sees zero or two records for the key.
        """
        _check_index(_spec(kind), field)
        existing = await self.find_one(kind, field, value)
        if existing is not None:
            await self.delete(kind, existing["id"])
        return await self.insert(kind, {**doc, field: value})


class EntityStore(ABC):
    """Abstract entity store — implement for different backends."""

    def __init__(self) -> None:
        self._listeners: list[ChangeListener] = []

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def _notify(self, change: ChangeSet) -> None:
        for listener in list(self._listeners):
            try:
                await listener(change)
            except Exception:
                logger.exception("Change listener failed for version %d", change.version)

    @abstractmethod
    def transaction(self) -> Any:
        """Async context manager yielding a :class:`Transaction`.

        An exception inside the block discards every write of that block.
        """
        ...

    @abstractmethod
    async def current_version(self) -> int:
        ...

    async def start(self) -> None:
        """Acquire background resources (no-op by default)."""

    async def close(self) -> None:
        """Release background resources (no-op by default)."""


# ── In-Memory Implementation ────────────────────────────────


class _MemoryTransaction(Transaction):
    def __init__(
        self,
        tables: dict[str, dict[str, dict[str, Any]]],
        seq: Iterator,
        version: int,
    ) -> None:
        super().__init__()
        self._tables = tables
        self._seq = seq
        self._undo: list[Callable[[], None]] = []
        self.version = version

    async def get(self, kind: str, record_id: str) -> dict[str, Any] | None:
        _spec(kind)
        rec = self._tables[kind].get(record_id)
        return dict(rec) if rec is not None else None

    async def find_one(self, kind: str, field: str, value: Any) -> dict[str, Any] | None:
        _check_index(_spec(kind), field)
        for rec in self._tables[kind].values():
            if rec.get(field) == value:
                return dict(rec)
        return None

    async def scan(
        self, kind: str, *, descending: bool = False, limit: int | None = None
    ) -> list[dict[str, Any]]:
        _spec(kind)
        records = sorted(self._tables[kind].values(), key=lambda r: r["seq"], reverse=descending)
        if limit is not None:
            records = records[:limit]
        return [dict(r) for r in records]

    async def insert(self, kind: str, doc: dict[str, Any]) -> str:
        spec = _spec(kind)
        for field in spec.indexes:
            if doc.get(field) is not None and await self.find_one(kind, field, doc[field]):
                raise ConflictError(f"A {kind[:-1]} with this {field} already exists")
        table = self._tables[kind]
        record_id = new_record_id(kind)
        table[record_id] = {**doc, "id": record_id, "seq": next(self._seq)}
        self._undo.append(lambda: table.pop(record_id, None))
        self.touched.add(kind)
        return record_id

    async def delete(self, kind: str, record_id: str) -> bool:
        _spec(kind)
        table = self._tables[kind]
        rec = table.pop(record_id, None)
        if rec is None:
            return False
        self._undo.append(lambda: table.__setitem__(record_id, rec))
        self.touched.add(kind)
        return True

    def rollback(self) -> None:
        for undo in reversed(self._undo):
            undo()
        self._undo.clear()
        self.touched.clear()


class InMemoryEntityStore(EntityStore):
    """Single-process store; transactions are serialized by an asyncio lock.

    Suitable for development, tests and single-worker deployments.
    """

    def __init__(self) -> None:
        super().__init__()
        self._tables: dict[str, dict[str, dict[str, Any]]] = {k: {} for k in SCHEMA}
        self._lock = asyncio.Lock()
        self._seq = itertools.count(1)
        self._version = 0

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Transaction]:
        change: ChangeSet | None = None
        async with self._lock:
            tx = _MemoryTransaction(self._tables, self._seq, self._version)
            try:
                yield tx
            except BaseException:
                tx.rollback()
                raise
            if tx.touched:
                self._version += 1
                change = ChangeSet(self._version, frozenset(tx.touched))
        if change is not None:
            await self._notify(change)

    async def current_version(self) -> int:
        return self._version

    def count(self, kind: str) -> int:
        """Number of records of *kind* (test/diagnostic helper)."""
        return len(self._tables[_spec(kind).name])


# ── Redis Implementation ─────────────────────────────────────


class _RedisTransaction(Transaction):
    """Reads hit Redis directly; writes are buffered in a MULTI/EXEC pipeline.

    Reads inside the block see the committed state plus this transaction's
    deletes (tracked locally so ``replace`` can re-insert under the same key).
    """

    def __init__(self, store: RedisEntityStore, version: int) -> None:
        super().__init__()
        self._store = store
        self._redis = store._redis
        self._pipe = store._redis.pipeline(transaction=True)
        self._deleted: set[str] = set()
        self._inserted: dict[tuple[str, str, str], str] = {}
        self.version = version

    async def get(self, kind: str, record_id: str) -> dict[str, Any] | None:
        _spec(kind)
        if record_id in self._deleted:
            return None
        raw = await self._redis.hget(self._store.key(kind, "rec"), record_id)
        return json.loads(raw) if raw else None

    async def find_one(self, kind: str, field: str, value: Any) -> dict[str, Any] | None:
        _check_index(_spec(kind), field)
        if (kind, field, str(value)) in self._inserted:
            return None  # pending insert, not yet readable
        record_id = await self._redis.hget(self._store.key(kind, "idx", field), str(value))
        if not record_id:
            return None
        return await self.get(kind, record_id)

    async def scan(
        self, kind: str, *, descending: bool = False, limit: int | None = None
    ) -> list[dict[str, Any]]:
        _spec(kind)
        end = -1 if limit is None else max(limit - 1, -1)
        if limit == 0:
            return []
        ids = await self._redis.zrange(self._store.key(kind, "order"), 0, end, desc=descending)
        ids = [i for i in ids if i not in self._deleted]
        if not ids:
            return []
        raws = await self._redis.hmget(self._store.key(kind, "rec"), ids)
        return [json.loads(raw) for raw in raws if raw]

    async def insert(self, kind: str, doc: dict[str, Any]) -> str:
        spec = _spec(kind)
        for field in spec.indexes:
            value = doc.get(field)
            if value is None:
                continue
            if (kind, field, str(value)) in self._inserted or await self.find_one(kind, field, value):
                raise ConflictError(f"A {kind[:-1]} with this {field} already exists")
        seq = await self._redis.incr(self._store.key("seq"))
        record_id = new_record_id(kind)
        record = {**doc, "id": record_id, "seq": seq}
        self._pipe.hset(self._store.key(kind, "rec"), record_id, json.dumps(record, default=str))
        self._pipe.zadd(self._store.key(kind, "order"), {record_id: seq})
        for field in spec.indexes:
            if doc.get(field) is not None:
                self._pipe.hset(self._store.key(kind, "idx", field), str(doc[field]), record_id)
                self._inserted[(kind, field, str(doc[field]))] = record_id
        self.touched.add(kind)
        return record_id

    async def delete(self, kind: str, record_id: str) -> bool:
        spec = _spec(kind)
        existing = await self.get(kind, record_id)
        if existing is None:
            return False
        self._pipe.hdel(self._store.key(kind, "rec"), record_id)
        self._pipe.zrem(self._store.key(kind, "order"), record_id)
        for field in spec.indexes:
            if existing.get(field) is not None:
                self._pipe.hdel(self._store.key(kind, "idx", field), str(existing[field]))
        self._deleted.add(record_id)
        self.touched.add(kind)
        return True

    async def commit(self) -> int:
        self._pipe.incr(self._store.key("version"))
        results = await self._pipe.execute()
        return int(results[-1])

    async def discard(self) -> None:
        await self._pipe.reset()


class RedisEntityStore(EntityStore):
    """Redis-backed store for multi-worker deployments.

    A distributed Redis lock serializes transactions across workers; change
    sets are broadcast on a pub/sub channel so every worker's live queries
    refresh, not only the worker that committed the write.

    Layout per kind: ``<prefix><kind>:rec`` (hash id → JSON),
    ``<prefix><kind>:order`` (zset id → seq), ``<prefix><kind>:idx:<field>``
    (hash value → id).
    """

    def __init__(self, redis_url: str, key_prefix: str = "mc:", lock_timeout: int = 10):
        import redis.asyncio as aioredis

        super().__init__()
        self._redis = aioredis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=10,
            socket_timeout=10,
        )
        self._prefix = key_prefix
        self._lock_timeout = lock_timeout
        self._origin = uuid.uuid4().hex[:8]
        self._pubsub = None
        self._listen_task: asyncio.Task | None = None

    def key(self, *parts: str) -> str:
        return self._prefix + ":".join(parts)

    @property
    def _channel(self) -> str:
        return self.key("changes")

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Transaction]:
        change: ChangeSet | None = None
        async with self._redis.lock(self.key("lock"), timeout=self._lock_timeout):
            tx = _RedisTransaction(self, await self.current_version())
            try:
                yield tx
            except BaseException:
                await tx.discard()
                raise
            if tx.touched:
                version = await tx.commit()
                change = ChangeSet(version, frozenset(tx.touched))
                await self._redis.publish(
                    self._channel,
                    json.dumps({"origin": self._origin, "version": version, "kinds": sorted(change.kinds)}),
                )
            else:
                await tx.discard()
        if change is not None:
            await self._notify(change)

    async def current_version(self) -> int:
        return int(await self._redis.get(self.key("version")) or 0)

    async def start(self) -> None:
        self._pubsub = self._redis.pubsub()
        await self._pubsub.subscribe(self._channel)
        self._listen_task = asyncio.create_task(self._listen())
        logger.info("RedisEntityStore listening for changes on %s", self._channel)

    async def _listen(self) -> None:
        async for message in self._pubsub.listen():
            if message.get("type") != "message":
                continue
            try:
                payload = json.loads(message["data"])
            except (TypeError, ValueError):
                logger.warning("Ignoring malformed change message: %r", message.get("data"))
                continue
            if payload.get("origin") == self._origin:
                continue  # already notified locally
            await self._notify(ChangeSet(int(payload["version"]), frozenset(payload["kinds"])))

    async def close(self) -> None:
        if self._listen_task is not None:
            self._listen_task.cancel()
            try:
                await self._listen_task
            except asyncio.CancelledError:
                pass
        if self._pubsub is not None:
            await self._pubsub.aclose()
        await self._redis.aclose()

    async def ping(self) -> bool:
        """Check Redis connectivity."""
        try:
            return await self._redis.ping()
        except Exception:
            return False


# ── Module-level Singleton ───────────────────────────────────

_store: EntityStore | None = None


def get_entity_store() -> EntityStore:
    """Get the singleton entity store instance."""
    global _store
    if _store is None:
        from config.settings import get_settings

        settings = get_settings()
        if settings.entity_store_type == "redis" and settings.redis_url:
            _store = RedisEntityStore(
                redis_url=settings.redis_url,
                key_prefix=settings.redis_key_prefix,
                lock_timeout=settings.redis_lock_timeout,
            )
            logger.info("Initialized RedisEntityStore (prefix=%s)", settings.redis_key_prefix)
        else:
            _store = InMemoryEntityStore()
            logger.info("Initialized InMemoryEntityStore")
    return _store
