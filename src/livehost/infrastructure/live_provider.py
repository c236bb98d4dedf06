"""Upstream live-session provider seam.

A provider connection reports what happens on one channel by calling the
``sink`` it was created with. The sink never blocks; the adapter owns what
happens next. Reconnection internals belong to the provider.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Callable, Optional, Protocol

from ..domain.events import (
    ChatReceived,
    MemberJoined,
    UpstreamConnected,
    UpstreamDisconnected,
    UpstreamError,
    UpstreamEvent,
)

logger = logging.getLogger("livehost.provider")

EventSink = Callable[[UpstreamEvent], None]


class LiveConnection(Protocol):
    async def connect(self) -> None: ...

    async def disconnect(self) -> None: ...


LiveProviderFactory = Callable[[str, EventSink], LiveConnection]


class TikTokLiveConnection:
    """Connection to a TikTok LIVE room through the ``TikTokLive`` client."""

    def __init__(
        self,
        channel: str,
        sink: EventSink,
        session_id: Optional[str] = None,
        target_idc: Optional[str] = None,
    ) -> None:
        self.channel = channel
        self._sink = sink
        self._session_id = session_id
        self._target_idc = target_idc
        self._client: Any = None
        self._task: Optional[asyncio.Task] = None

    def _build_client(self) -> Any:
        from TikTokLive import TikTokLiveClient
        from TikTokLive.events import CommentEvent, ConnectEvent, DisconnectEvent, JoinEvent

        client = TikTokLiveClient(unique_id=f"@{self.channel}")
        if self._session_id:
            self._authenticate(client)

        async def on_connect(_event: ConnectEvent) -> None:
            self._sink(UpstreamConnected())

        async def on_disconnect(_event: DisconnectEvent) -> None:
            self._sink(UpstreamDisconnected())

        async def on_join(event: JoinEvent) -> None:
            self._sink(MemberJoined(user_id=event.user.unique_id))

        async def on_comment(event: CommentEvent) -> None:
            self._sink(ChatReceived(user_id=event.user.unique_id, text=event.comment))

        client.add_listener(ConnectEvent, on_connect)
        client.add_listener(DisconnectEvent, on_disconnect)
        client.add_listener(JoinEvent, on_join)
        client.add_listener(CommentEvent, on_comment)
        return client

    def _authenticate(self, client: Any) -> None:
        """Log the client in so age-restricted or private rooms can be read."""
        web = client.web
        if hasattr(web, "set_session"):
            web.set_session(self._session_id, self._target_idc)
        else:
            web.set_session_id(self._session_id)
        logger.info("tiktok_session_authenticated", extra={"channel": self.channel})

    def _on_task_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("tiktok_stream_failed", extra={"channel": self.channel, "err": str(exc)})
            self._sink(UpstreamError(detail=str(exc)))

    async def connect(self) -> None:
        self._client = self._build_client()
        self._task = await self._client.start()
        self._task.add_done_callback(self._on_task_done)

    async def disconnect(self) -> None:
        if self._client is None:
            return
        try:
            await self._client.disconnect()
        finally:
            if self._task is not None and not self._task.done():
                self._task.cancel()
            self._client = None
            self._task = None


def tiktok_provider(channel: str, sink: EventSink) -> LiveConnection:
    return TikTokLiveConnection(
        channel,
        sink,
        session_id=os.getenv("TIKTOK_SESSION_ID") or None,
        target_idc=os.getenv("TIKTOK_TARGET_IDC") or None,
    )
