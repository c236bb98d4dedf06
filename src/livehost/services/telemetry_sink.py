from __future__ import annotations

import logging
import time
from collections import Counter, deque
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Deque, Dict, List, Optional

_logger = logging.getLogger("livehost.telemetry")
_metric_logger = logging.getLogger("livehost.metrics")


@dataclass
class TelemetryEvent:
    """One diagnostic fact about the live engine (session or stream lifecycle)."""

    name: str
    properties: Dict[str, Any] = field(default_factory=dict)
    channel: Optional[str] = None
    at: float = field(default_factory=time.time)


_MAX_BUFFER = 200
_RECENT: Deque[TelemetryEvent] = deque(maxlen=_MAX_BUFFER)
_TOTALS: Counter = Counter()
_LOCK = Lock()


def record_event(event: TelemetryEvent) -> None:
    with _LOCK:
        _RECENT.append(event)
        _TOTALS[event.name] += 1
    try:
        _logger.info(
            "telemetry_event name=%s",
            event.name,
            extra={"telemetry_channel": event.channel, "telemetry_properties": event.properties},
        )
    except Exception:
        # A broken handler must not take the live session down
        pass


def list_recent_events(limit: int = 50, name: Optional[str] = None) -> List[TelemetryEvent]:
    """Newest-last slice of the rolling buffer, optionally filtered by name."""
    if limit <= 0:
        return []
    with _LOCK:
        events = list(_RECENT)
    if name is not None:
        events = [e for e in events if e.name == name]
    return events[-limit:]


def event_counts() -> Dict[str, int]:
    """Totals per event name since start (or the last clear), not capped by the buffer."""
    with _LOCK:
        return dict(_TOTALS)


def clear_recent_events() -> None:
    with _LOCK:
        _RECENT.clear()
        _TOTALS.clear()


def record_metric(
    *,
    name: str,
    value: float,
    properties: Optional[Dict[str, Any]] = None,
    metric_type: str = "gauge",
) -> None:
    """Log a metric sample next to the Prometheus series.

    ``metric_type`` is "gauge", "counter" or "gauge_delta" (a +/- adjustment,
    used for attached stream counts).
    """
    try:
        _metric_logger.info(
            "metric_event",
            extra={
                "metric_name": name,
                "metric_value": value,
                "metric_properties": dict(properties or {}),
                "metric_type": metric_type,
            },
        )
    except Exception:
        pass
