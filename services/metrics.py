"""In-memory metrics for classroom operations and AI calls.

Every named query, mutation and AI skill call is recorded with its status and
latency so ``/api/metrics`` can report counts, success rate and p50/p95.
Live-subscription gauges are tracked alongside.
"""

from __future__ import annotations

import math
import threading
from collections import defaultdict


def _percentile(values: list[float], p: float) -> float:
    if not values:
        return 0.0
    if len(values) == 1:
        return values[0]
    ordered = sorted(values)
    pos = (len(ordered) - 1) * p
    lo = math.floor(pos)
    hi = math.ceil(pos)
    if lo == hi:
        return ordered[lo]
    frac = pos - lo
    return ordered[lo] * (1 - frac) + ordered[hi] * frac


class MetricsCollector:
    """Thread-safe in-memory metrics collector."""

    # Keep latency samples bounded per operation
    MAX_SAMPLES = 5000

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._latencies: dict[str, list[float]] = defaultdict(list)
        self._status: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
        self._categories: dict[str, str] = {}
        self._active_subscriptions = 0
        self._pushes = 0

    def record_call(
        self,
        *,
        operation: str,
        category: str,
        status: str,
        latency_ms: float,
    ) -> None:
        """Record one call.  *category* is ``query``, ``mutation`` or ``ai``."""
        with self._lock:
            samples = self._latencies[operation]
            samples.append(float(latency_ms))
            if len(samples) > self.MAX_SAMPLES:
                del samples[: len(samples) - self.MAX_SAMPLES]
            self._status[operation][status] += 1
            self._categories[operation] = category

    def subscription_opened(self) -> None:
        with self._lock:
            self._active_subscriptions += 1

    def subscription_closed(self) -> None:
        with self._lock:
            self._active_subscriptions = max(0, self._active_subscriptions - 1)

    def snapshot_pushed(self) -> None:
        with self._lock:
            self._pushes += 1

    def snapshot(self) -> dict:
        with self._lock:
            operations = {}
            for name, latencies in self._latencies.items():
                status_map = self._status.get(name, {})
                total = sum(status_map.values())
                ok_count = status_map.get("ok", 0)
                operations[name] = {
                    "category": self._categories.get(name, ""),
                    "count": total,
                    "success_rate": (ok_count / total) if total else 0.0,
                    "latency_p50_ms": round(_percentile(latencies, 0.5), 2),
                    "latency_p95_ms": round(_percentile(latencies, 0.95), 2),
                    "status_breakdown": dict(status_map),
                }

            return {
                "operations": operations,
                "live": {
                    "active_subscriptions": self._active_subscriptions,
                    "snapshots_pushed": self._pushes,
                },
            }

    def reset(self) -> None:
        with self._lock:
            self._latencies.clear()
            self._status.clear()
            self._categories.clear()
            self._active_subscriptions = 0
            self._pushes = 0


_metrics_collector = MetricsCollector()


def get_metrics_collector() -> MetricsCollector:
    return _metrics_collector
