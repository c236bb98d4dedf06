import asyncio
import json

import pytest

from src.livehost.domain.events import ChatEcho, Narration, SessionState, StatusChanged, StatusLog
from src.livehost.infrastructure.event_bus import EventBus
from src.livehost.services.publisher import KEEPALIVE_FRAME, frame_event, stream_live_events


def _payload(frame: str) -> dict:
    assert frame.startswith("data: ") and frame.endswith("\n\n")
    return json.loads(frame[len("data: "):-2])


def test_frames_match_wire_shapes():
    assert _payload(frame_event(Narration("Halo semua"))) == {"type": "say", "text": "Halo semua"}
    assert _payload(frame_event(StatusLog("connected"))) == {"type": "log", "text": "connected"}
    assert _payload(frame_event(ChatEcho(user_id="budi", text="halo"))) == {
        "type": "chat",
        "username": "budi",
        "message": "halo",
    }
    assert _payload(frame_event(StatusChanged(state=SessionState.ONLINE, channel="alice"))) == {
        "type": "status",
        "state": "online",
        "channel": "alice",
    }


def test_frame_keeps_non_ascii_text():
    assert "Selamat pagi ☀" in frame_event(Narration("Selamat pagi ☀"))


@pytest.mark.asyncio
async def test_stream_opens_with_retry_hint_then_events():
    bus = EventBus()
    stream = stream_live_events(bus, heartbeat_seconds=5)

    assert await stream.__anext__() == "retry: 2000\n\n"
    assert bus.subscriber_count == 1

    bus.publish(Narration("Halo"))
    bus.publish(ChatEcho(user_id="budi", text="hai"))
    assert _payload(await stream.__anext__())["type"] == "say"
    assert _payload(await stream.__anext__())["type"] == "chat"

    await stream.aclose()
    assert bus.subscriber_count == 0
    assert bus.publish(Narration("after close")) == 0


@pytest.mark.asyncio
async def test_stream_sends_keepalive_when_quiet():
    bus = EventBus()
    stream = stream_live_events(bus, heartbeat_seconds=0.05)
    await stream.__anext__()

    assert await asyncio.wait_for(stream.__anext__(), 1) == KEEPALIVE_FRAME
    await stream.aclose()


@pytest.mark.asyncio
async def test_stream_ends_when_client_disconnects():
    bus = EventBus()

    async def gone() -> bool:
        return True

    frames = [frame async for frame in stream_live_events(bus, is_disconnected=gone)]

    assert frames == ["retry: 2000\n\n"]
    assert bus.subscriber_count == 0


@pytest.mark.asyncio
async def test_stream_ends_when_bus_closes():
    bus = EventBus()
    stream = stream_live_events(bus, heartbeat_seconds=5, retry_ms=500)
    assert await stream.__anext__() == "retry: 500\n\n"

    bus.publish(StatusLog("stopped"))
    bus.close()

    rest = [frame async for frame in stream]
    assert [_payload(f) for f in rest] == [{"type": "log", "text": "stopped"}]


@pytest.mark.asyncio
async def test_many_streams_see_identical_sequences():
    bus = EventBus()
    streams = [stream_live_events(bus, heartbeat_seconds=5) for _ in range(30)]
    for stream in streams:
        await stream.__anext__()

    lines = [Narration(f"baris {i}") for i in range(3)]
    for line in lines:
        bus.publish(line)

    for stream in streams:
        got = [_payload(await stream.__anext__())["text"] for _ in lines]
        assert got == ["baris 0", "baris 1", "baris 2"]
        await stream.aclose()
    assert bus.subscriber_count == 0
