import asyncio

import pytest

from src.livehost.domain.events import ChatEcho, Narration, StatusLog
from src.livehost.infrastructure.event_bus import EventBus

from tests.utils import drain


@pytest.mark.asyncio
async def test_every_subscriber_sees_each_event_once_in_order():
    bus = EventBus()
    subs = [bus.subscribe() for _ in range(25)]
    events = [Narration(f"line {i}") for i in range(5)]

    for event in events:
        assert bus.publish(event) == 25

    for sub in subs:
        assert drain(sub) == events
        assert sub.delivered == 5


@pytest.mark.asyncio
async def test_subscriber_only_receives_events_after_attach():
    bus = EventBus()
    bus.publish(StatusLog("connected"))
    sub = bus.subscribe()
    bus.publish(StatusLog("disconnected"))

    assert drain(sub) == [StatusLog("disconnected")]


@pytest.mark.asyncio
async def test_publish_without_subscribers_is_a_no_op():
    bus = EventBus()
    assert bus.publish(Narration("nobody listening")) == 0
    assert bus.published == 1


@pytest.mark.asyncio
async def test_full_queue_drops_for_that_subscriber_only():
    bus = EventBus(max_queue=2)
    slow = bus.subscribe()
    fast = bus.subscribe()

    for i in range(3):
        bus.publish(Narration(str(i)))
        # fast keeps up
        assert fast.get_nowait() == Narration(str(i))

    assert slow.dropped == 1
    assert fast.dropped == 0
    assert drain(slow) == [Narration("0"), Narration("1")]


@pytest.mark.asyncio
async def test_unsubscribe_releases_and_wakes_reader():
    bus = EventBus()
    sub = bus.subscribe()
    reader = asyncio.create_task(sub.get())
    await asyncio.sleep(0)

    bus.unsubscribe(sub)
    assert await asyncio.wait_for(reader, 1) is None
    assert bus.subscriber_count == 0
    assert sub.closed

    # later publishes and a second unsubscribe are harmless
    assert bus.publish(Narration("after")) == 0
    bus.unsubscribe(sub)


@pytest.mark.asyncio
async def test_context_manager_unsubscribes_on_exit():
    bus = EventBus()
    async with bus.subscribe() as sub:
        assert bus.subscriber_count == 1
        bus.publish(ChatEcho(user_id="budi", text="halo"))
        assert await sub.get() == ChatEcho(user_id="budi", text="halo")
    assert bus.subscriber_count == 0


@pytest.mark.asyncio
async def test_async_iteration_ends_when_bus_closes():
    bus = EventBus()
    sub = bus.subscribe()
    bus.publish(Narration("a"))
    bus.publish(Narration("b"))
    bus.close()

    received = [event async for event in sub]
    assert received == [Narration("a"), Narration("b")]


@pytest.mark.asyncio
async def test_subscribe_after_close_returns_closed_subscription():
    bus = EventBus()
    bus.close()
    sub = bus.subscribe()
    assert sub.closed
    assert await sub.get() is None
    assert bus.subscriber_count == 0


@pytest.mark.asyncio
async def test_close_wakes_reader_even_when_queue_is_full():
    bus = EventBus(max_queue=1)
    sub = bus.subscribe()
    bus.publish(Narration("only"))
    bus.close()
    assert await asyncio.wait_for(sub.get(), 1) is None


@pytest.mark.asyncio
async def test_publish_from_worker_thread_reaches_loop_subscriber():
    bus = EventBus()
    sub = bus.subscribe()

    delivered = await asyncio.to_thread(bus.publish, Narration("from thread"))

    assert delivered == 1
    assert await asyncio.wait_for(sub.get(), 1) == Narration("from thread")


@pytest.mark.asyncio
async def test_concurrent_thread_publishers_lose_nothing():
    bus = EventBus(max_queue=1000)
    sub = bus.subscribe()

    def burst(prefix: str) -> None:
        for i in range(50):
            bus.publish(Narration(f"{prefix}-{i}"))

    await asyncio.gather(*(asyncio.to_thread(burst, p) for p in "abcd"))
    await asyncio.sleep(0.05)

    texts = [event.text for event in drain(sub)]
    assert len(texts) == 200
    for prefix in "abcd":
        # per-producer order survives
        assert [t for t in texts if t.startswith(prefix)] == [f"{prefix}-{i}" for i in range(50)]
