"""Gunicorn configuration for Mandarin Connect.

Usage:
    gunicorn main:app -c deploy/gunicorn.conf.py

Multiple workers require ENTITY_STORE_TYPE=redis: the in-memory store and
its live queries are local to one process.
"""

import multiprocessing
import os

# ─── Server socket ──────────────────────────────────────────────

bind = os.getenv("BIND", "0.0.0.0:5000")
backlog = 2048

# ─── Worker processes ───────────────────────────────────────────
#
# One async worker per core; each holds its own live-query hub and
# receives other workers' changes over Redis pub/sub.

_default_workers = min(multiprocessing.cpu_count(), 4)
if os.getenv("ENTITY_STORE_TYPE", "memory").lower() != "redis":
    _default_workers = 1

workers = int(os.getenv("WORKERS", _default_workers))
worker_class = "uvicorn.workers.UvicornWorker"

# ─── Timeouts ───────────────────────────────────────────────────
#
# AI calls are bounded by AI_TIMEOUT_SECONDS (60s by default); live
# query SSE streams stay open for the whole visit and are kept alive
# by pings.

timeout = 120
graceful_timeout = 30   # let SSE subscribers disconnect cleanly
keepalive = 120

# ─── Worker recycling ──────────────────────────────────────────

max_requests = 5000
max_requests_jitter = 500

# ─── Logging ────────────────────────────────────────────────────

accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info")

# ─── Process naming ─────────────────────────────────────────────

proc_name = "mandarin-connect"

# ─── Server hooks ───────────────────────────────────────────────


def on_starting(server):
    server.log.info(
        "Starting Mandarin Connect: workers=%d, timeout=%ds, bind=%s",
        workers,
        timeout,
        bind,
    )


def post_fork(server, worker):
    server.log.info("Worker spawned (pid: %s)", worker.pid)
