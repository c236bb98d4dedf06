from __future__ import annotations

import asyncio
from typing import List, Optional

from src.livehost.domain.errors import CollaboratorFailure
from src.livehost.domain.events import UpstreamConnected, UpstreamEvent
from src.livehost.domain.models import Product


class FakeConnection:
    def __init__(self, provider: "FakeProvider", channel: str, sink) -> None:
        self.provider = provider
        self.channel = channel
        self.sink = sink
        self.connected = False
        self.disconnects = 0

    async def connect(self) -> None:
        if self.channel in self.provider.fail_channels:
            raise ConnectionError(f"{self.channel} is not live")
        self.connected = True
        if self.provider.announce_connect:
            self.sink(UpstreamConnected())

    async def disconnect(self) -> None:
        self.disconnects += 1
        self.connected = False
        if self.provider.fail_disconnect:
            raise RuntimeError("socket already closed")

    def emit(self, event: UpstreamEvent) -> None:
        self.sink(event)


class FakeProvider:
    """Provider factory that records every connection it hands out."""

    def __init__(self) -> None:
        self.connections: List[FakeConnection] = []
        self.fail_channels: set = set()
        self.fail_disconnect = False
        self.announce_connect = False

    def __call__(self, channel: str, sink) -> FakeConnection:
        conn = FakeConnection(self, channel, sink)
        self.connections.append(conn)
        return conn

    @property
    def live(self) -> List[FakeConnection]:
        return [c for c in self.connections if c.connected]

    def latest(self) -> FakeConnection:
        return self.connections[-1]


class FakeCompletion:
    def __init__(self, reply: str = "Siap kak!", error: Optional[Exception] = None, delay: float = 0.0) -> None:
        self.reply = reply
        self.error = error
        self.delay = delay
        self.calls: List[tuple] = []

    async def complete(self, system_persona: str, user_text: str, max_tokens: int) -> str:
        self.calls.append((system_persona, user_text, max_tokens))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.reply


class FakeSpeech:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: List[tuple] = []

    def synthesize(self, text: str, voice: str) -> bytes:
        self.calls.append((text, voice))
        if self.fail:
            raise CollaboratorFailure("speech", "provider down")
        return b"ID3" + text.encode("utf-8")

    async def asynthesize(self, text: str, voice: str) -> bytes:
        return self.synthesize(text, voice)


async def settle(rounds: int = 10) -> None:
    """Let queued callbacks and dispatcher tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def drain(sub) -> list:
    events = []
    while True:
        event = sub.get_nowait()
        if event is None:
            return events
        events.append(event)


def product(product_id: int, name: str = "") -> Product:
    return Product(id=product_id, url=f"https://shop.example/p/{product_id}", name=name)
