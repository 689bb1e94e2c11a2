"""Shared pytest fixtures for the classroom service.

Provides:
- ``store``: fresh InMemoryEntityStore per test
- ``hub``: LiveQueryHub bound to ``store``
- ``capability``: ScriptedCapability installed as the generative capability
- ``student`` / ``delegate`` / ``admin``: sessions for freshly registered accounts
- ``metrics_collector``: fresh MetricsCollector per test
"""

from __future__ import annotations

import pytest

# Register the named classroom operations
import services.classroom  # noqa: F401

import services.concurrency as concurrency
import services.entity_store as entity_store_module
import services.live_query as live_query_module
import services.session_store as session_store_module
from services.entity_store import InMemoryEntityStore
from services.generative import set_capability
from services.live_query import LiveQueryHub
from services.metrics import MetricsCollector, get_metrics_collector
from services.session_store import Session
from tests.helpers import ScriptedCapability, make_session


@pytest.fixture(autouse=True)
def _reset_singletons():
    """Every test starts with fresh store, hub, sessions, semaphores and metrics."""
    entity_store_module._store = None
    session_store_module._store = None
    live_query_module._hub = None
    concurrency._llm_semaphore = None
    concurrency._heavy_semaphore = None
    get_metrics_collector().reset()
    yield
    entity_store_module._store = None
    session_store_module._store = None
    live_query_module._hub = None
    set_capability(None)


@pytest.fixture
def store() -> InMemoryEntityStore:
    return InMemoryEntityStore()


@pytest.fixture
async def hub(store):
    hub = LiveQueryHub(store)
    yield hub
    await hub.close()


@pytest.fixture
def capability():
    cap = ScriptedCapability()
    set_capability(cap)
    yield cap
    set_capability(None)


@pytest.fixture
async def student(hub) -> Session:
    return await make_session(hub, "li.wei@example.com", "Li Wei", "student")


@pytest.fixture
async def delegate(hub) -> Session:
    return await make_session(hub, "camille@example.com", "Camille", "delegate")


@pytest.fixture
async def admin(hub) -> Session:
    return await make_session(hub, "prof@example.com", "Professeur", "admin")


@pytest.fixture
def metrics_collector() -> MetricsCollector:
    """Fresh metrics collector — isolated per test."""
    return MetricsCollector()
