"""
Tests for agentics.orchestration.event_bus
============================================

What's Being Tested:
    - Ordered delivery per subscription, optional run scoping
    - A full queue drops events for that subscriber only
    - A failing callback keeps receiving later events
    - Streams end after the terminal event
    - Run-scoped callback subscriptions close themselves
    - A dropped terminal event still closes run-scoped subscriptions
"""

import asyncio

import pytest

from agentics.core.events import DoneEvent, ErrorEvent, LogEvent, StartEvent
from agentics.orchestration.event_bus import InMemoryEventBus


def log(run_id: str, message: str) -> LogEvent:
    return LogEvent(run_id=run_id, message=message)


# =============================================================================
# Callback Subscriptions
# =============================================================================
class TestCallbackSubscriptions:
    async def test_delivers_in_order(self) -> None:
        bus = InMemoryEventBus()
        received: list[str] = []

        async def callback(event):
            received.append(event.message)

        bus.subscribe(callback)
        for message in ("a", "b", "c"):
            await bus.publish(log("r-1", message))
        await bus.flush()

        assert received == ["a", "b", "c"]
        assert bus.published_count == 3

    async def test_run_scoped_subscription_filters(self) -> None:
        bus = InMemoryEventBus()
        received: list[str] = []

        async def callback(event):
            received.append(event.run_id)

        bus.subscribe(callback, run_id="r-1")
        await bus.publish(log("r-2", "other"))
        await bus.publish(log("r-1", "mine"))
        await bus.flush()

        assert received == ["r-1"]

    async def test_run_scoped_subscription_closes_after_terminal(self) -> None:
        bus = InMemoryEventBus()
        received: list[str] = []

        async def callback(event):
            received.append(event.type)

        bus.subscribe(callback, run_id="r-1")
        await bus.publish(StartEvent(run_id="r-1"))
        await bus.publish(DoneEvent(run_id="r-1"))
        await bus.flush()
        await asyncio.sleep(0)

        assert received == ["start", "done"]
        assert bus.subscriber_count == 0

    async def test_failing_callback_keeps_receiving(self) -> None:
        bus = InMemoryEventBus()
        received: list[str] = []

        async def callback(event):
            received.append(event.message)
            if event.message == "bad":
                raise RuntimeError("subscriber bug")

        bus.subscribe(callback)
        await bus.publish(log("r-1", "bad"))
        await bus.publish(log("r-1", "good"))
        await bus.flush()

        assert received == ["bad", "good"]

    async def test_full_queue_drops_for_slow_subscriber_only(self) -> None:
        bus = InMemoryEventBus(queue_size=2)
        release = asyncio.Event()
        slow: list[str] = []
        fast: list[str] = []

        async def slow_callback(event):
            await release.wait()
            slow.append(event.message)

        async def fast_callback(event):
            fast.append(event.message)

        slow_subscription = bus.subscribe(slow_callback)
        bus.subscribe(fast_callback)

        # Let the slow drain task take the first event and block on it.
        await bus.publish(log("r-1", "0"))
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        for index in range(1, 6):
            await bus.publish(log("r-1", str(index)))
            await asyncio.sleep(0)

        release.set()
        await bus.flush()

        assert fast == ["0", "1", "2", "3", "4", "5"]
        assert slow == ["0", "1", "2"]
        assert slow_subscription.dropped == 3

    async def test_dropped_terminal_event_still_closes_subscription(self) -> None:
        bus = InMemoryEventBus(queue_size=1)
        received: list[str] = []

        async def slow_callback(event):
            await asyncio.sleep(0.01)
            received.append(event.type)

        subscription = bus.subscribe(slow_callback, run_id="r-1")
        await bus.publish(StartEvent(run_id="r-1"))
        await bus.publish(StartEvent(run_id="r-1"))
        await bus.publish(DoneEvent(run_id="r-1"))

        await asyncio.wait_for(subscription.task, timeout=2)

        assert received == ["start"]
        assert subscription.dropped == 2
        assert bus.subscriber_count == 0

    async def test_release_waits_for_queued_events(self) -> None:
        bus = InMemoryEventBus()
        received: list[str] = []

        async def callback(event):
            received.append(event.message)

        subscription = bus.subscribe(callback, run_id="r-1")
        await bus.publish(log("r-1", "a"))
        await bus.publish(log("r-1", "b"))
        bus.release(subscription)

        await asyncio.wait_for(subscription.task, timeout=2)

        assert received == ["a", "b"]
        assert bus.subscriber_count == 0

    async def test_release_of_idle_subscription_detaches_now(self) -> None:
        bus = InMemoryEventBus()

        async def callback(event):
            pass

        subscription = bus.subscribe(callback, run_id="r-1")
        await asyncio.sleep(0)
        bus.release(subscription)

        assert bus.subscriber_count == 0

    async def test_unsubscribe_is_idempotent(self) -> None:
        bus = InMemoryEventBus()

        async def callback(event):
            pass

        subscription = bus.subscribe(callback)
        bus.unsubscribe(subscription)
        bus.unsubscribe(subscription)
        assert bus.subscriber_count == 0


# =============================================================================
# Streams
# =============================================================================
class TestEventStreams:
    async def test_stream_ends_after_terminal_event(self) -> None:
        bus = InMemoryEventBus()
        events = bus.open_stream("r-1")

        await bus.publish(StartEvent(run_id="r-1"))
        await bus.publish(log("r-2", "not mine"))
        await bus.publish(ErrorEvent(run_id="r-1", error_code="X", message="x"))
        await bus.publish(log("r-1", "after terminal"))

        received = [event.type async for event in events]

        assert received == ["start", "error"]
        assert events.finished
        assert bus.subscriber_count == 0

    async def test_stream_ends_when_terminal_event_is_dropped(self) -> None:
        bus = InMemoryEventBus(queue_size=1)
        events = bus.open_stream("r-1")

        await bus.publish(StartEvent(run_id="r-1"))
        await bus.publish(DoneEvent(run_id="r-1"))

        received = [event.type async for event in events]

        assert received == ["start"]
        assert events.finished
        assert bus.subscriber_count == 0

    async def test_no_replay_for_late_streams(self) -> None:
        bus = InMemoryEventBus()
        await bus.publish(StartEvent(run_id="r-1"))

        async with bus.open_stream("r-1") as events:
            with pytest.raises(asyncio.TimeoutError):
                await events.get(timeout=0.01)

    async def test_stream_generator(self) -> None:
        bus = InMemoryEventBus()
        received: list[str] = []

        async def consume():
            async for event in bus.stream("r-1"):
                received.append(event.type)

        task = asyncio.create_task(consume())
        await asyncio.sleep(0)
        await bus.publish(StartEvent(run_id="r-1"))
        await bus.publish(DoneEvent(run_id="r-1"))
        await asyncio.wait_for(task, timeout=1)

        assert received == ["start", "done"]

    async def test_disconnect_drops_subscriptions(self) -> None:
        bus = InMemoryEventBus()
        bus.open_stream("r-1")
        bus.open_stream("r-2")

        await bus.disconnect()
        assert bus.subscriber_count == 0
