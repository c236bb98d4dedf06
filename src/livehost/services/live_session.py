"""Owns the one upstream live session and turns its events into bus traffic.

Provider callbacks land in a per-session inbox queue; a dispatcher task per
session drains it. Every session carries a generation number, and anything
arriving for an older generation is dropped, so a torn-down connection can
never speak for its successor.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional, Set

from ..core.session_state import is_valid_transition
from ..domain.errors import InvalidArgument, UpstreamConnectFailure
from ..domain.events import (
    LOG_CONNECTED,
    LOG_DISCONNECTED,
    LOG_ERROR,
    LOG_STOPPED,
    ChatEcho,
    ChatReceived,
    MemberJoined,
    Narration,
    SessionState,
    StatusChanged,
    StatusLog,
    UpstreamConnected,
    UpstreamDisconnected,
    UpstreamError,
    UpstreamEvent,
)
from ..infrastructure.event_bus import EventBus
from ..infrastructure.live_provider import LiveConnection, LiveProviderFactory
from .idle_scheduler import IdlePromoScheduler
from .narration import RECONNECTED_LINE, NarrationPolicy, chat_line
from .telemetry_sink import TelemetryEvent, record_event

logger = logging.getLogger("livehost.session")


def normalize_channel(channel_name: Optional[str]) -> str:
    name = (channel_name or "").strip()
    if name.startswith("@"):
        name = name[1:].strip()
    if not name:
        raise InvalidArgument("Username required")
    return name


@dataclass(frozen=True)
class StartAck:
    channel: str


@dataclass
class _LiveSession:
    generation: int
    channel: str
    inbox: "asyncio.Queue[UpstreamEvent]" = field(default_factory=asyncio.Queue)
    connection: Optional[LiveConnection] = None
    dispatcher: Optional[asyncio.Task] = None
    replies: Set[asyncio.Task] = field(default_factory=set)


class LiveSessionAdapter:
    def __init__(
        self,
        bus: EventBus,
        scheduler: IdlePromoScheduler,
        policy: NarrationPolicy,
        provider_factory: LiveProviderFactory,
    ) -> None:
        self._bus = bus
        self._scheduler = scheduler
        self._policy = policy
        self._provider_factory = provider_factory
        self._lock = asyncio.Lock()
        self._generation = 0
        self._session: Optional[_LiveSession] = None
        self._state = SessionState.IDLE

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def channel(self) -> Optional[str]:
        return self._session.channel if self._session else None

    def snapshot(self) -> dict:
        return {"state": self._state.value, "channel": self.channel}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def start(self, channel_name: Optional[str]) -> StartAck:
        channel = normalize_channel(channel_name)
        async with self._lock:
            await self._teardown()

            self._generation += 1
            session = _LiveSession(generation=self._generation, channel=channel)
            self._session = session
            self._transition(SessionState.CONNECTING)

            def sink(event: UpstreamEvent, _session: _LiveSession = session) -> None:
                self._accept(_session, event)

            session.dispatcher = asyncio.create_task(self._dispatch_loop(session), name=f"live-dispatch-{channel}")
            try:
                session.connection = self._provider_factory(channel, sink)
                await session.connection.connect()
            except asyncio.CancelledError:
                await self._teardown()
                self._transition(SessionState.IDLE)
                raise
            except Exception as exc:
                logger.warning("live_connect_failed", extra={"channel": channel, "err": str(exc)})
                await self._teardown()
                self._transition(SessionState.IDLE)
                record_event(TelemetryEvent(name="live_connect_failed", properties={"err": str(exc)}, channel=channel))
                raise UpstreamConnectFailure(channel, str(exc) or type(exc).__name__) from exc

            self._transition(SessionState.ONLINE)
            self._scheduler.reset()
            record_event(TelemetryEvent(name="live_started", channel=channel))
            logger.info("live_started channel=%s generation=%s", channel, session.generation)
            return StartAck(channel=channel)

    async def stop(self) -> None:
        async with self._lock:
            stopped_channel = self.channel
            await self._teardown()
            self._transition(SessionState.IDLE)
        if stopped_channel is not None:
            self._bus.publish(StatusLog(LOG_STOPPED))
            record_event(TelemetryEvent(name="live_stopped", channel=stopped_channel))

    async def _teardown(self) -> None:
        """Drop the current session. Best effort: errors are logged, not raised."""
        session = self._session
        if session is None:
            return
        self._session = None
        if session.connection is not None:
            try:
                await session.connection.disconnect()
            except Exception as exc:
                logger.warning("live_disconnect_failed", extra={"channel": session.channel, "err": str(exc)})
        pending = list(session.replies)
        if session.dispatcher is not None:
            pending.append(session.dispatcher)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        logger.info("live_torn_down channel=%s generation=%s", session.channel, session.generation)

    def _transition(self, target: SessionState) -> None:
        current = self._state
        if current == target:
            return
        if not is_valid_transition(current, target):
            logger.debug("session_transition_ignored", extra={"from": current.value, "to": target.value})
            return
        self._state = target
        self._bus.publish(StatusChanged(state=target, channel=self.channel))
        record_event(
            TelemetryEvent(
                name="session_state",
                properties={"from": current.value, "to": target.value},
                channel=self.channel,
            )
        )

    def _is_current(self, session: _LiveSession) -> bool:
        return self._session is session and session.generation == self._generation

    # ------------------------------------------------------------------
    # Upstream events
    # ------------------------------------------------------------------
    def _accept(self, session: _LiveSession, event: UpstreamEvent) -> None:
        if not self._is_current(session):
            logger.debug("late_upstream_event_ignored", extra={"generation": session.generation})
            return
        session.inbox.put_nowait(event)

    async def _dispatch_loop(self, session: _LiveSession) -> None:
        while True:
            event = await session.inbox.get()
            if not self._is_current(session):
                continue
            try:
                self._handle(session, event)
            except Exception:
                logger.exception("upstream_handler_failed channel=%s", session.channel)
                self._bus.publish(StatusLog(LOG_ERROR))

    def _handle(self, session: _LiveSession, event: UpstreamEvent) -> None:
        if isinstance(event, UpstreamConnected):
            self._bus.publish(StatusLog(LOG_CONNECTED))
            self._bus.publish(Narration(RECONNECTED_LINE))
            self._transition(SessionState.ONLINE)
        elif isinstance(event, MemberJoined):
            self._bus.publish(Narration(self._policy.greet(event.user_id)))
            self._scheduler.reset()
        elif isinstance(event, ChatReceived):
            self._bus.publish(ChatEcho(user_id=event.user_id, text=event.text))
            self._scheduler.reset()
            task = asyncio.create_task(self._narrate_reply(session, event))
            session.replies.add(task)
            task.add_done_callback(session.replies.discard)
        elif isinstance(event, UpstreamDisconnected):
            self._bus.publish(StatusLog(LOG_DISCONNECTED))
            self._transition(SessionState.RECONNECTING)
        elif isinstance(event, UpstreamError):
            logger.warning("upstream_error", extra={"channel": session.channel, "detail": event.detail})
            self._bus.publish(StatusLog(LOG_ERROR))
            self._transition(SessionState.ERROR)
        else:
            raise TypeError(f"Unhandled upstream event: {type(event).__name__}")

    async def _narrate_reply(self, session: _LiveSession, event: ChatReceived) -> None:
        try:
            reply = await self._policy.respond_to_chat(event.user_id, event.text)
        except Exception:
            logger.exception("chat_narration_failed user=%s", event.user_id)
            self._bus.publish(StatusLog(LOG_ERROR))
            return
        if not self._is_current(session):
            return
        self._bus.publish(Narration(chat_line(event.user_id, event.text, reply)))
