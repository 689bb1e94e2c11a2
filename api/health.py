"""Health check and metrics endpoints."""

from fastapi import APIRouter

from config.settings import get_settings
from services.entity_store import RedisEntityStore, get_entity_store
from services.live_query import get_hub
from services.metrics import get_metrics_collector

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
async def health():
    settings = get_settings()
    store = get_entity_store()
    body = {
        "status": "healthy",
        "store": settings.entity_store_type,
        "version": await store.current_version(),
    }
    if isinstance(store, RedisEntityStore) and not await store.ping():
        body["status"] = "degraded"
    return body


@router.get("/metrics")
async def metrics():
    snapshot = get_metrics_collector().snapshot()
    snapshot["live"]["hub_subscriptions"] = get_hub().subscription_count
    return snapshot
