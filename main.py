"""FastAPI entry point for the Mandarin Connect classroom service."""

import asyncio
import logging
from contextlib import asynccontextmanager

import litellm
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config.settings import get_settings
from errors import ClassroomError
from services.classroom import seed_defaults
from services.concurrency import ConcurrencyLimitMiddleware
from services.entity_store import get_entity_store
from services.live_query import get_hub
from services.middleware import RequestIdMiddleware
from services.session_store import get_session_store, periodic_cleanup

logger = logging.getLogger(__name__)

settings = get_settings()

# ── Global LiteLLM settings ──────────────────────────────────
litellm.request_timeout = settings.ai_timeout_seconds

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle — start/stop shared resources."""
    store = get_entity_store()
    await store.start()
    if settings.seed_defaults:
        await seed_defaults(store)

    hub = get_hub()
    get_session_store()
    cleanup_task = asyncio.create_task(periodic_cleanup(interval_seconds=300))

    yield

    cleanup_task.cancel()
    try:
        await cleanup_task
    except asyncio.CancelledError:
        pass

    await hub.close()
    await store.close()


app = FastAPI(
    title="Mandarin Connect",
    description="Classroom chat, announcements, schedule and quizzes with live queries and AI helpers",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(ClassroomError)
async def classroom_error_handler(request: Request, exc: ClassroomError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": exc.code},
    )


# ── Middleware stack (outermost first) ─────────────────────────
# Order matters: CORS → RequestId → ConcurrencyLimit → route handler
app.add_middleware(ConcurrencyLimitMiddleware)
app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Register routers ────────────────────────────────────────
from api.ai import router as ai_router  # noqa: E402
from api.announcements import router as announcements_router  # noqa: E402
from api.auth import router as auth_router  # noqa: E402
from api.health import router as health_router  # noqa: E402
from api.live import router as live_router  # noqa: E402
from api.messages import router as messages_router  # noqa: E402
from api.quiz import router as quiz_router  # noqa: E402
from api.schedule import router as schedule_router  # noqa: E402

app.include_router(health_router)
app.include_router(auth_router)
app.include_router(messages_router)
app.include_router(announcements_router)
app.include_router(schedule_router)
app.include_router(quiz_router)
app.include_router(ai_router)
app.include_router(live_router)


if __name__ == "__main__":
    if settings.debug:
        # Development: single worker with reload
        uvicorn.run(
            "main:app",
            host="0.0.0.0",
            port=settings.service_port,
            reload=True,
        )
    else:
        # Live queries are per-process unless the Redis store is configured.
        # Production: gunicorn main:app -c deploy/gunicorn.conf.py
        uvicorn.run(
            "main:app",
            host="0.0.0.0",
            port=settings.service_port,
            workers=1 if settings.entity_store_type == "memory" else 4,
            timeout_keep_alive=120,
        )
