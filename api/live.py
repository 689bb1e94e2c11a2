"""Live query API — subscriptions streamed as Server-Sent Events.

``GET /api/live/{query}`` opens a subscription and pushes the whole current
result as ``event: snapshot`` with ``{"query", "version", "result"}`` every
time it changes.  Extra query-string parameters become query arguments;
``?token=`` authenticates EventSource clients that cannot set headers.
Closing the connection closes the subscription.
"""

from __future__ import annotations

import inspect
import json
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, Depends, Request
from fastapi.encoders import jsonable_encoder
from sse_starlette.sse import EventSourceResponse

from api.deps import hub_dependency, optional_session
from errors import ValidationError
from services.live_query import QUERY, LiveQueryHub, Subscription, get_operation
from services.session_store import Session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/live", tags=["live"])

_SSE_PING_INTERVAL = 15  # seconds
_RESERVED_PARAMS = frozenset({"token"})


def _query_params(request: Request, query: str) -> dict:
    op = get_operation(query, QUERY)
    accepted = set(inspect.signature(op.func).parameters) - {"tx", "session"}
    params = {k: v for k, v in request.query_params.items() if k not in _RESERVED_PARAMS}
    unknown = set(params) - accepted
    if unknown:
        raise ValidationError(f"Unknown parameter(s) for {query}: {', '.join(sorted(unknown))}")
    return params


async def _snapshot_events(sub: Subscription) -> AsyncGenerator[dict, None]:
    try:
        async for snapshot in sub:
            if snapshot.error is not None:
                yield {
                    "event": "error",
                    "data": json.dumps({"detail": snapshot.error.message, "error": snapshot.error.code}),
                }
                continue
            payload = {
                "query": snapshot.query,
                "version": snapshot.version,
                "result": jsonable_encoder(snapshot.result),
            }
            yield {"event": "snapshot", "data": json.dumps(payload, ensure_ascii=False)}
    finally:
        sub.close()
        logger.debug("Live stream for %s ended", sub.query)


@router.get("/{query}")
async def live_query(
    query: str,
    request: Request,
    session: Session | None = Depends(optional_session),
    hub: LiveQueryHub = Depends(hub_dependency),
):
    params = _query_params(request, query)
    sub = await hub.subscribe(query, session, **params)
    return EventSourceResponse(
        _snapshot_events(sub),
        ping=_SSE_PING_INTERVAL,
        media_type="text/event-stream",
    )
