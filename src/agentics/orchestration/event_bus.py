"""
agentics.orchestration.event_bus - Run Event Channel
======================================================

This module implements the publish/subscribe channel that carries
AgentStepEvents from the orchestrator to any number of observers: the SSE
bridge, tests, log sinks, or a caller's ``on_event`` callback.

Architecture Context:
    The orchestrator never calls observers directly. It publishes to the
    bus, and each subscription has its own bounded queue:

    ┌──────────────┐  publish (never blocks)  ┌─────────────────────────┐
    │ Orchestrator │ ───────────────────────→ │  EventBus               │
    └──────────────┘                          │   ├── queue → callback  │ (drain task)
                                              │   ├── queue → callback  │
                                              │   └── queue → stream    │ (SSE bridge)
                                              └─────────────────────────┘

Delivery Contract:
    - At-most-once per event per active subscription.
    - Ordered per subscription.
    - A full queue drops the event for THAT subscription only (logged), so a
      slow consumer can never stall a run or other consumers.
    - A callback that raises is logged and keeps receiving later events.
    - No replay buffer: events published before a subscription exists are
      never delivered to it. Late observers fall back to a status fetch.

Subscription Kinds:
    subscribe(callback, run_id=None)  → callback drained by its own task.
        A run-scoped callback subscription closes itself after delivering
        the run's terminal event.
        If a full queue drops that terminal event instead, the subscription
        closes once the events already queued have been handled.
    open_stream(run_id)               → EventStream (async iterator), already
        registered when this call returns; ends after the terminal event.
    release(subscription)             → close a callback subscription once its
        queue is drained (the orchestrator releases on_event observers this
        way when a run ends).
    stream(run_id)                    → async generator over open_stream().

Usage:
    >>> bus = InMemoryEventBus()
    >>> events = bus.open_stream(run_id)
    >>> async for event in events:
    ...     print(event.type)
"""

from __future__ import annotations

import asyncio
import itertools
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, Optional

import structlog

from agentics.core.events import AgentStepEvent

logger = structlog.get_logger()


EventCallback = Callable[[Any], Awaitable[None]]

DEFAULT_QUEUE_SIZE = 256


# =============================================================================
# Subscription Handles
# =============================================================================
class Subscription:
    """One registered observer and its bounded queue.

    Attributes:
        id: Bus-local subscription id.
        run_id: Only events of this run are delivered (None = all runs).
        dropped: Events discarded because the queue was full.
        ending: No further events are expected; close once the queue is empty.
        busy: A callback is currently handling an event.
    """

    def __init__(self, sub_id: int, run_id: Optional[str], queue_size: int) -> None:
        self.id = sub_id
        self.run_id = run_id
        self.dropped = 0
        self.queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=queue_size)
        self.closed = False
        self.ending = False
        self.busy = False
        self.task: Optional[asyncio.Task[None]] = None

    def matches(self, event: Any) -> bool:
        return self.run_id is None or self.run_id == event.run_id

    def offer(self, event: Any) -> bool:
        """Enqueue without blocking. Returns False if the event was dropped."""
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            return False
        return True

    def idle(self) -> bool:
        return self.queue.empty() and not self.busy

    async def wait_drained(self) -> None:
        """Wait until every queued event has been handled."""
        await self.queue.join()


class EventStream:
    """Async iterator over one run's events, ending after a terminal event.

    Obtain it from ``EventBus.open_stream``; the subscription is live as soon
    as the stream object exists. Always ``close()`` it (or use ``async with``).
    """

    def __init__(self, bus: EventBus, subscription: Subscription) -> None:
        self._bus = bus
        self._subscription = subscription
        self._finished = False

    @property
    def run_id(self) -> Optional[str]:
        return self._subscription.run_id

    @property
    def finished(self) -> bool:
        return self._finished

    async def get(self, timeout: Optional[float] = None) -> Any:
        """Next event. Raises asyncio.TimeoutError when ``timeout`` elapses."""
        if timeout is None:
            event = await self._subscription.queue.get()
        else:
            event = await asyncio.wait_for(self._subscription.queue.get(), timeout)
        self._subscription.queue.task_done()
        if event.is_terminal or (self._subscription.ending and self._subscription.queue.empty()):
            self._finished = True
        return event

    def close(self) -> None:
        self._bus.unsubscribe(self._subscription)

    def __aiter__(self) -> EventStream:
        return self

    async def __anext__(self) -> Any:
        if self._finished:
            self.close()
            raise StopAsyncIteration
        return await self.get()

    async def __aenter__(self) -> EventStream:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.close()


# =============================================================================
# Abstract Base Class
# =============================================================================
class EventBus(ABC):
    """Abstract publish/subscribe channel for AgentStepEvents."""

    async def connect(self) -> None:
        """Prepare the bus. Default: nothing to do."""

    async def disconnect(self) -> None:
        """Stop delivery and drop every subscription. Default: nothing to do."""

    @abstractmethod
    async def publish(self, event: AgentStepEvent) -> None:
        """Deliver ``event`` to matching subscriptions without waiting on them.

        Never raises because of a subscriber.
        """
        ...

    @abstractmethod
    def subscribe(self, callback: EventCallback, run_id: Optional[str] = None) -> Subscription:
        """Attach an async callback, optionally scoped to one run."""
        ...

    @abstractmethod
    def open_stream(self, run_id: str) -> EventStream:
        """Register a stream subscription for one run and return it."""
        ...

    @abstractmethod
    def unsubscribe(self, subscription: Subscription) -> None:
        """Detach a subscription. Idempotent."""
        ...

    def release(self, subscription: Subscription) -> None:
        """Detach a subscription once its queued events are handled.

        Default: detach immediately.
        """
        self.unsubscribe(subscription)

    async def stream(self, run_id: str) -> AsyncIterator[Any]:
        """Yield a run's events until (and including) the terminal event.

        The subscription is registered when iteration starts; use
        open_stream() when events must not be missed between setup and
        iteration.
        """
        events = self.open_stream(run_id)
        try:
            async for event in events:
                yield event
        finally:
            events.close()


# =============================================================================
# In-Memory Implementation
# =============================================================================
class InMemoryEventBus(EventBus):
    """Single-process event bus backed by bounded asyncio queues.

    Attributes:
        _subscriptions: subscription id → Subscription.
        _queue_size: Bound of each subscription queue.
        _published_count: Events published since creation (for tests).
    """

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        self._subscriptions: dict[int, Subscription] = {}
        self._ids = itertools.count(1)
        self._queue_size = queue_size
        self._published_count = 0
        self._logger = logger.bind(component="event_bus", impl="in_memory")

    @property
    def published_count(self) -> int:
        return self._published_count

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    # =========================================================================
    # Publish
    # =========================================================================

    async def publish(self, event: AgentStepEvent) -> None:
        self._published_count += 1
        for subscription in list(self._subscriptions.values()):
            if subscription.closed or not subscription.matches(event):
                continue
            if not subscription.offer(event):
                self._logger.warning(
                    "event_dropped",
                    subscription_id=subscription.id,
                    run_id=event.run_id,
                    event_type=event.type,
                    dropped=subscription.dropped,
                )
                if subscription.run_id is not None and event.is_terminal:
                    self._end(subscription)

    # =========================================================================
    # Subscribe
    # =========================================================================

    def _register(self, run_id: Optional[str]) -> Subscription:
        subscription = Subscription(next(self._ids), run_id, self._queue_size)
        self._subscriptions[subscription.id] = subscription
        self._logger.debug("subscribed", subscription_id=subscription.id, run_id=run_id)
        return subscription

    def subscribe(self, callback: EventCallback, run_id: Optional[str] = None) -> Subscription:
        subscription = self._register(run_id)
        subscription.task = asyncio.create_task(self._drain(subscription, callback))
        return subscription

    def open_stream(self, run_id: str) -> EventStream:
        return EventStream(self, self._register(run_id))

    def release(self, subscription: Subscription) -> None:
        self._end(subscription)

    def _end(self, subscription: Subscription) -> None:
        """Mark a subscription as ending; detach now if nothing is pending.

        Streams are left for their reader to finish, which happens once the
        reader empties the queue.
        """
        subscription.ending = True
        if subscription.task is not None and subscription.idle():
            self.unsubscribe(subscription)

    def unsubscribe(self, subscription: Subscription) -> None:
        subscription.closed = True
        if self._subscriptions.pop(subscription.id, None) is None:
            return
        task = subscription.task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        self._logger.debug("unsubscribed", subscription_id=subscription.id)

    async def _drain(self, subscription: Subscription, callback: EventCallback) -> None:
        """Deliver queued events to one callback, in order, until closed."""
        while True:
            event = await subscription.queue.get()
            subscription.busy = True
            try:
                await callback(event)
            except Exception as e:
                self._logger.error(
                    "subscriber_callback_failed",
                    subscription_id=subscription.id,
                    run_id=event.run_id,
                    event_type=event.type,
                    error=str(e),
                )
            finally:
                subscription.queue.task_done()
                subscription.busy = False

            run_over = subscription.run_id is not None and event.is_terminal
            if run_over or (subscription.ending and subscription.queue.empty()):
                self.unsubscribe(subscription)
                return

    async def flush(self) -> None:
        """Wait until every callback subscription has handled its queue."""
        pending = [s for s in self._subscriptions.values() if s.task is not None]
        await asyncio.gather(*(s.wait_drained() for s in pending))

    async def disconnect(self) -> None:
        for subscription in list(self._subscriptions.values()):
            self.unsubscribe(subscription)
        self._logger.info("event_bus_disconnected")
