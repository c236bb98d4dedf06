from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import AsyncIterator, Awaitable, Callable, Optional

from ..domain.events import OutboundEvent
from ..infrastructure.event_bus import EventBus
from ..observability.metrics import STREAM_SUBSCRIBERS
from .telemetry_sink import TelemetryEvent, record_event, record_metric

logger = logging.getLogger("livehost.stream")

try:
    STREAM_RETRY_MS = int(os.getenv("LIVEHOST_STREAM_RETRY_MS", "2000"))
except ValueError:
    STREAM_RETRY_MS = 2000
try:
    STREAM_HEARTBEAT_SECONDS = float(os.getenv("LIVEHOST_STREAM_HEARTBEAT_SECONDS", "15"))
except ValueError:
    STREAM_HEARTBEAT_SECONDS = 15.0

KEEPALIVE_FRAME = ": keepalive\n\n"


def frame_event(event: OutboundEvent) -> str:
    return f"data: {json.dumps(event.to_wire(), ensure_ascii=False, separators=(',', ':'))}\n\n"


async def stream_live_events(
    bus: EventBus,
    *,
    is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
    heartbeat_seconds: float = STREAM_HEARTBEAT_SECONDS,
    retry_ms: int = STREAM_RETRY_MS,
) -> AsyncIterator[str]:
    """SSE frames for one dashboard client.

    The subscription is taken before the first frame so nothing published
    after attach is missed; it is released the moment the client goes away.
    """
    sub = bus.subscribe()
    STREAM_SUBSCRIBERS.inc()
    record_metric(name="live_stream_active", value=1, properties={"subscription_id": sub.id}, metric_type="gauge_delta")
    record_event(TelemetryEvent(name="stream_attached", properties={"subscription_id": sub.id}))
    heartbeat = max(0.05, heartbeat_seconds)
    try:
        yield f"retry: {retry_ms}\n\n"
        while True:
            if is_disconnected is not None and await is_disconnected():
                break
            try:
                event = await asyncio.wait_for(sub.get(), timeout=heartbeat)
            except asyncio.TimeoutError:
                yield KEEPALIVE_FRAME
                continue
            if event is None:
                break
            yield frame_event(event)
    finally:
        bus.unsubscribe(sub)
        STREAM_SUBSCRIBERS.dec()
        record_metric(name="live_stream_active", value=-1, properties={"subscription_id": sub.id}, metric_type="gauge_delta")
        record_event(
            TelemetryEvent(name="stream_detached", properties={"subscription_id": sub.id, "dropped": sub.dropped})
        )
        logger.debug("stream_detached", extra={"subscription_id": sub.id})
