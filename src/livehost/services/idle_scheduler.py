"""Promote a showcase product after a stretch of chat silence.

One timer per engine. ``reset()`` is the only way to arm it: chat and member
activity call it, a fire never re-arms by itself. Each arm gets a generation
number; a fire whose generation is stale lost a race with a reset and is
discarded.
"""

from __future__ import annotations

import asyncio
import logging
import os
import random
import time
from threading import Lock
from typing import Callable, List, Optional

from ..domain.events import Narration
from ..domain.models import Product
from ..infrastructure.event_bus import EventBus
from ..observability.metrics import PROMOTIONS
from .narration import promo_line

logger = logging.getLogger("livehost.idle")

try:
    IDLE_WINDOW_SECONDS = float(os.getenv("LIVEHOST_IDLE_SECONDS", "180"))
except ValueError:
    IDLE_WINDOW_SECONDS = 180.0


class IdlePromoScheduler:
    def __init__(
        self,
        bus: EventBus,
        catalog_snapshot: Callable[[], List[Product]],
        window_seconds: float = IDLE_WINDOW_SECONDS,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._bus = bus
        self._catalog_snapshot = catalog_snapshot
        self.window_seconds = window_seconds
        self._rng = rng or random.Random()
        self._clock = clock
        self._lock = Lock()
        self._generation = 0
        self._handle: Optional[asyncio.TimerHandle] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._deadline: Optional[float] = None
        self._last_activity: Optional[float] = None
        self.fired_count = 0

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._deadline is not None

    @property
    def deadline(self) -> Optional[float]:
        """Clock time the pending promotion fires at, ``None`` when disarmed."""
        with self._lock:
            return self._deadline

    @property
    def last_activity(self) -> Optional[float]:
        with self._lock:
            return self._last_activity

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def seconds_remaining(self) -> Optional[float]:
        deadline = self.deadline
        if deadline is None:
            return None
        return max(0.0, deadline - self._clock())

    def reset(self) -> None:
        """Cancel any pending promotion and arm a fresh window.

        Safe from any thread; must be called once from inside a running loop
        before off-loop calls can be scheduled.
        """
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        with self._lock:
            if running is not None:
                self._loop = running
            loop = self._loop
            if loop is None:
                raise RuntimeError("IdlePromoScheduler.reset() needs a running event loop")
            self._generation += 1
            generation = self._generation
            if self._handle is not None:
                self._handle.cancel()
                self._handle = None
            now = self._clock()
            self._last_activity = now
            self._deadline = now + self.window_seconds
        if running is loop:
            self._arm(generation)
        else:
            loop.call_soon_threadsafe(self._arm, generation)

    def _arm(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._loop is None:
                return
            self._handle = self._loop.call_later(self.window_seconds, self._fire, generation)
        logger.debug("idle_timer_armed", extra={"generation": generation, "window_s": self.window_seconds})

    def cancel(self) -> None:
        with self._lock:
            self._generation += 1
            if self._handle is not None:
                self._handle.cancel()
                self._handle = None
            self._deadline = None

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                logger.debug("idle_fire_discarded_stale", extra={"generation": generation})
                return
            self._handle = None
            self._deadline = None
        try:
            items = self._catalog_snapshot()
        except Exception:
            logger.exception("idle_catalog_snapshot_failed")
            return
        if not items:
            logger.debug("idle_fire_empty_catalog")
            return
        item = self._rng.choice(items)
        self.fired_count += 1
        PROMOTIONS.inc()
        logger.info("idle_promotion", extra={"product_id": item.id})
        self._bus.publish(Narration(promo_line(item)))
