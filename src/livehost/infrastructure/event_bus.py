"""In-process fan-out bus between live producers and dashboard streams.

Every subscription owns a bounded queue bound to the event loop it was created
on. Publishing never blocks: when a subscriber's queue is full the event is
dropped for that subscriber only and counted, so one stalled dashboard cannot
hold up the live session.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import os
from threading import Lock
from typing import AsyncIterator, Dict, List, Optional

from ..domain.events import OutboundEvent, event_type
from ..observability.metrics import BUS_DROPPED, BUS_EVENTS

logger = logging.getLogger("livehost.bus")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw)
        return value if value > 0 else default
    except ValueError:
        return default


DEFAULT_QUEUE_SIZE = _env_int("LIVEHOST_BUS_QUEUE_SIZE", 256)

# Wakes a pending get() after the subscription is closed
_CLOSED = object()

_ids = itertools.count(1)


class Subscription:
    def __init__(self, bus: "EventBus", loop: asyncio.AbstractEventLoop, max_queue: int) -> None:
        self.id = next(_ids)
        self._bus = bus
        self._loop = loop
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_queue)
        self._closed = False
        self.dropped = 0
        self.delivered = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    def _offer(self, event: OutboundEvent) -> None:
        # Runs on the subscription's loop
        if self._closed:
            return
        try:
            self._queue.put_nowait(event)
            self.delivered += 1
        except asyncio.QueueFull:
            self.dropped += 1
            BUS_DROPPED.inc()
            logger.warning(
                "bus_subscriber_queue_full_dropping",
                extra={"subscription_id": self.id, "dropped": self.dropped, "event_type": event_type(event)},
            )

    def _close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            # Make room for the wake-up marker; the subscriber is going away anyway
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                pass
            self._queue.put_nowait(_CLOSED)

    async def get(self) -> Optional[OutboundEvent]:
        """Next event, or ``None`` once the subscription is closed."""
        if self._closed and self._queue.empty():
            return None
        item = await self._queue.get()
        if item is _CLOSED:
            return None
        return item

    def get_nowait(self) -> Optional[OutboundEvent]:
        try:
            item = self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None
        if item is _CLOSED:
            return None
        return item

    def __aiter__(self) -> AsyncIterator[OutboundEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[OutboundEvent]:
        while True:
            event = await self.get()
            if event is None:
                return
            yield event

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self._bus.unsubscribe(self)


class EventBus:
    def __init__(self, max_queue: Optional[int] = None) -> None:
        self._max_queue = max_queue or DEFAULT_QUEUE_SIZE
        self._subscriptions: Dict[int, Subscription] = {}
        self._lock = Lock()
        self._closed = False
        self.published = 0

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def subscribe(self) -> Subscription:
        """Attach a subscriber on the running event loop.

        Only events published after this call are delivered to it.
        """
        loop = asyncio.get_running_loop()
        sub = Subscription(self, loop, self._max_queue)
        with self._lock:
            if self._closed:
                sub._close()
                return sub
            self._subscriptions[sub.id] = sub
        logger.debug("bus_subscribed", extra={"subscription_id": sub.id})
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            removed = self._subscriptions.pop(sub.id, None)
        if removed is None and sub.closed:
            return
        self._dispatch(sub, None)
        logger.debug("bus_unsubscribed", extra={"subscription_id": sub.id})

    def publish(self, event: OutboundEvent) -> int:
        """Fan ``event`` out to every open subscription without blocking.

        Returns the number of subscriptions the event was handed to.
        """
        with self._lock:
            targets: List[Subscription] = list(self._subscriptions.values())
        self.published += 1
        BUS_EVENTS.labels(type=event_type(event)).inc()
        for sub in targets:
            self._dispatch(sub, event)
        return len(targets)

    def close(self) -> None:
        with self._lock:
            self._closed = True
            targets = list(self._subscriptions.values())
            self._subscriptions.clear()
        for sub in targets:
            self._dispatch(sub, None)

    def _dispatch(self, sub: Subscription, event: Optional[OutboundEvent]) -> None:
        action = sub._close if event is None else sub._offer
        args = () if event is None else (event,)
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is sub.loop:
            action(*args)
            return
        try:
            sub.loop.call_soon_threadsafe(action, *args)
        except RuntimeError:
            # Loop already closed: the subscriber is gone
            with self._lock:
                self._subscriptions.pop(sub.id, None)
            logger.debug("bus_subscriber_loop_closed", extra={"subscription_id": sub.id})
