from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..infrastructure.catalog_store import CatalogStore, InMemoryCatalogStore
from ..infrastructure.event_bus import EventBus
from ..infrastructure.live_provider import LiveProviderFactory, tiktok_provider
from ..services.chat_ai import ChatCompletionClient
from ..services.idle_scheduler import IDLE_WINDOW_SECONDS, IdlePromoScheduler
from ..services.live_session import LiveSessionAdapter
from ..services.narration import CompletionClient, NarrationPolicy
from ..services.speech import SpeechSynthesizer

logger = logging.getLogger("livehost.engine")


@dataclass
class LiveEngine:
    """Everything one process needs to run a live session, owned in one place."""

    store: CatalogStore
    bus: EventBus
    scheduler: IdlePromoScheduler
    policy: NarrationPolicy
    adapter: LiveSessionAdapter
    speech: SpeechSynthesizer

    async def shutdown(self) -> None:
        try:
            await self.adapter.stop()
        except Exception:
            logger.exception("engine_shutdown_stop_failed")
        self.scheduler.cancel()
        self.bus.close()
        logger.info("engine_shutdown")


def build_engine(
    *,
    provider_factory: Optional[LiveProviderFactory] = None,
    completion: Optional[CompletionClient] = None,
    speech: Optional[SpeechSynthesizer] = None,
    store: Optional[CatalogStore] = None,
    bus: Optional[EventBus] = None,
    idle_seconds: float = IDLE_WINDOW_SECONDS,
) -> LiveEngine:
    store = store or InMemoryCatalogStore()
    bus = bus or EventBus()
    scheduler = IdlePromoScheduler(bus, store.list_products, window_seconds=idle_seconds)
    policy = NarrationPolicy(completion if completion is not None else ChatCompletionClient())
    adapter = LiveSessionAdapter(bus, scheduler, policy, provider_factory or tiktok_provider)
    return LiveEngine(
        store=store,
        bus=bus,
        scheduler=scheduler,
        policy=policy,
        adapter=adapter,
        speech=speech or SpeechSynthesizer(),
    )


_engine: Optional[LiveEngine] = None


def get_engine() -> LiveEngine:
    global _engine
    if _engine is None:
        _engine = build_engine()
    return _engine


def current_engine() -> Optional[LiveEngine]:
    """The process engine if one has been built, without building one."""
    return _engine


def reset_engine(engine: Optional[LiveEngine] = None) -> None:
    """Replace (or drop) the process engine. Used by the app lifespan and tests."""
    global _engine
    _engine = engine
