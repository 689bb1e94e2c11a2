"""Global concurrency controls for LLM API calls and heavy endpoints.

Uses asyncio.Semaphore to cap the number of *concurrent* outbound model
requests per worker process, so a burst of translations or quiz
generations cannot exhaust provider rate limits.

All middleware uses pure ASGI implementation (not BaseHTTPMiddleware)
to preserve SSE streaming compatibility.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Coroutine

from starlette.types import ASGIApp, Receive, Scope, Send

from config.settings import get_settings

logger = logging.getLogger(__name__)

# ── Global LLM semaphore ─────────────────────────────────────

_llm_semaphore: asyncio.Semaphore | None = None


def _get_semaphore() -> asyncio.Semaphore:
    """Lazy-init to ensure semaphore is bound to the running event loop."""
    global _llm_semaphore
    if _llm_semaphore is None:
        limit = get_settings().max_concurrent_llm
        _llm_semaphore = asyncio.Semaphore(limit)
        logger.info("LLM concurrency semaphore initialized (max=%d)", limit)
    return _llm_semaphore


async def rate_limited_llm_call(
    func: Callable[..., Coroutine[Any, Any, Any]],
    *args: Any,
    **kwargs: Any,
) -> Any:
    """Execute an async LLM function with concurrency limiting.

    Usage::

        result = await rate_limited_llm_call(capability.generate, request)
    """
    sem = _get_semaphore()
    async with sem:
        return await func(*args, **kwargs)


# ── Heavy endpoint concurrency middleware (pure ASGI) ─────────
# Requests beyond the limit receive 503 instead of queuing forever.

_MAX_CONCURRENT_HEAVY = 15  # per worker
_heavy_semaphore: asyncio.Semaphore | None = None

# Endpoints that wait on the generative model
_HEAVY_PATHS = frozenset({
    "/api/ai/translate",
    "/api/ai/image",
    "/api/quiz/generate",
    "/api/messages/translated",
    "/api/announcements/illustrated",
})


def _get_heavy_semaphore() -> asyncio.Semaphore:
    global _heavy_semaphore
    if _heavy_semaphore is None:
        _heavy_semaphore = asyncio.Semaphore(_MAX_CONCURRENT_HEAVY)
        logger.info("Heavy endpoint semaphore initialized (max=%d)", _MAX_CONCURRENT_HEAVY)
    return _heavy_semaphore


class ConcurrencyLimitMiddleware:
    """Pure ASGI middleware — reject heavy requests when the worker is at capacity.

    Returns HTTP 503 with Retry-After header for overloaded endpoints.
    Store-only endpoints and live streams pass through unaffected.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        path = scope.get("path", "")
        if path not in _HEAVY_PATHS:
            await self.app(scope, receive, send)
            return

        sem = _get_heavy_semaphore()

        # Full: reject with 503 instead of queuing
        if sem.locked():
            logger.warning("Concurrency limit reached for %s, returning 503", path)
            body = json.dumps({
                "detail": "Server busy, too many concurrent AI requests. Please retry.",
                "error": "busy",
            }).encode()
            await send({
                "type": "http.response.start",
                "status": 503,
                "headers": [
                    (b"content-type", b"application/json"),
                    (b"retry-after", b"5"),
                ],
            })
            await send({
                "type": "http.response.body",
                "body": body,
            })
            return

        async with sem:
            await self.app(scope, receive, send)
