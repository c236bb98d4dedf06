"""Prometheus metrics for the LiveHost FastAPI backend.

Adds an HTTP middleware that records request latency per method/path/status,
plus the live engine counters (bus traffic, drops, stream subscribers).
"""

from __future__ import annotations

import time
from typing import Callable, Awaitable

from prometheus_client import Counter, Gauge, Histogram
from starlette.requests import Request
from starlette.responses import Response

# Histogram buckets chosen for web latencies (seconds)
REQUEST_LATENCY = Histogram(
    "livehost_request_latency_seconds",
    "HTTP request latency in seconds",
    labelnames=("method", "path", "status"),
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0),
)

BUS_EVENTS = Counter(
    "livehost_bus_events_total",
    "Events published on the live event bus",
    labelnames=("type",),
)

BUS_DROPPED = Counter(
    "livehost_bus_dropped_events_total",
    "Events dropped for a subscriber whose queue was full",
)

STREAM_SUBSCRIBERS = Gauge(
    "livehost_stream_subscribers",
    "Dashboard streams currently attached to the bus",
)

PROMOTIONS = Counter(
    "livehost_promotions_total",
    "Idle promotions narrated",
)


def sanitize_path(path: str) -> str:
    """Reduce high-cardinality paths to a coarse label.

    Keeps the first two static segments so /api/live and /live stay distinct.
    """
    if not path:
        return "/"
    segs = [s for s in path.split("?")[0].split("/") if s]
    if not segs:
        return "/"
    if segs[0] == "api" and len(segs) > 1:
        return "/api/" + segs[1]
    return "/" + segs[0]


def metrics_middleware_factory() -> Callable[[Request, Callable[[Request], Awaitable[Response]]], Awaitable[Response]]:
    async def middleware(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        # Avoid observing the metrics endpoint itself
        if request.url.path.endswith("/metrics"):
            return await call_next(request)
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start
        try:
            REQUEST_LATENCY.labels(
                method=request.method,
                path=sanitize_path(request.url.path),
                status=str(response.status_code),
            ).observe(elapsed)
        except Exception:
            # Never block the request due to metrics
            pass
        return response

    return middleware
