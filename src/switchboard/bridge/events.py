"""EventBus - fan-out of bridge notifications to subscribers.

Subscribers receive ``connected``, ``disconnected`` and ``messageReceived``
events. Publishing never blocks: each subscriber has a bounded queue and
the oldest queued event is dropped when a slow consumer falls behind.
Events are offered to subscribers in registration order.

A subscriber either passes a callback (sync or async), which the bus
invokes from a delivery task it owns, or iterates the subscription:

    sub = bus.subscribe()
    async for event in sub:
        ...
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_MAX_QUEUE_SIZE = 100
DEFAULT_DELIVERY_DRAIN_TIMEOUT = 1.0


class EventType(str, Enum):
    """Notification kinds published by the bridge."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    MESSAGE_RECEIVED = "messageReceived"


@dataclass(frozen=True)
class BridgeEvent:
    """A single notification."""

    type: EventType
    endpoint_id: str
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "endpointId": self.endpoint_id,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
        }


EventCallback = Callable[[BridgeEvent], Awaitable[None] | None]

_CLOSED = object()


class Subscription:
    """One subscriber's bounded event queue."""

    def __init__(
        self,
        callback: EventCallback | None = None,
        max_queue: int = DEFAULT_MAX_QUEUE_SIZE,
        event_types: Iterable[EventType] | None = None,
    ):
        if max_queue < 1:
            raise ValueError("max_queue must be at least 1")
        self.callback = callback
        self.max_queue = max_queue
        self.event_types = frozenset(event_types) if event_types else None
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_queue)
        self._dropped = 0
        self._closed = False

    @property
    def dropped(self) -> int:
        """Events discarded because the queue was full."""
        return self._dropped

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def closed(self) -> bool:
        return self._closed

    def wants(self, event: BridgeEvent) -> bool:
        return not self._closed and (self.event_types is None or event.type in self.event_types)

    def offer(self, event: Any) -> None:
        """Enqueue without blocking, dropping the oldest event when full."""
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            dropped = self._queue.get_nowait()
            if dropped is not _CLOSED:
                self._dropped += 1
                logger.debug(f"Subscriber queue full, dropped {getattr(dropped, 'type', dropped)}")
            self._queue.put_nowait(event)

    def close(self) -> None:
        """Stop accepting events; iteration ends once the queue drains."""
        if self._closed:
            return
        self._closed = True
        self.offer(_CLOSED)

    def get_nowait(self) -> BridgeEvent | None:
        """Next queued event, or None if the queue is empty."""
        try:
            event = self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None
        return None if event is _CLOSED else event

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> BridgeEvent:
        event = await self._queue.get()
        if event is _CLOSED:
            raise StopAsyncIteration
        return event


class EventBus:
    """Subscription registry with per-subscriber bounded delivery."""

    def __init__(self, max_queue: int = DEFAULT_MAX_QUEUE_SIZE):
        self.max_queue = max_queue
        self._subscriptions: list[Subscription] = []
        self._delivery_tasks: dict[Subscription, asyncio.Task] = {}
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def subscriptions(self) -> list[Subscription]:
        return list(self._subscriptions)

    def subscribe(
        self,
        callback: EventCallback | None = None,
        *,
        max_queue: int | None = None,
        event_types: Iterable[EventType] | None = None,
    ) -> Subscription:
        """Register a subscriber.

        Args:
            callback: Invoked for each event; omit to iterate the subscription
            max_queue: Queue bound for this subscriber (default: bus setting)
            event_types: Only deliver these event types (default: all)

        Returns:
            The new Subscription
        """
        subscription = Subscription(
            callback=callback,
            max_queue=max_queue or self.max_queue,
            event_types=event_types,
        )
        self._subscriptions.append(subscription)
        if callback is not None and self._running:
            self._start_delivery(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove a subscriber. Its queued events are discarded."""
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
        subscription.close()
        task = self._delivery_tasks.pop(subscription, None)
        if task:
            task.cancel()

    def publish(self, event: BridgeEvent) -> None:
        """Offer an event to every interested subscriber, in registration order."""
        for subscription in list(self._subscriptions):
            if subscription.wants(event):
                subscription.offer(event)

    def start(self) -> None:
        """Begin delivering to callback subscribers."""
        if self._running:
            return
        self._running = True
        for subscription in self._subscriptions:
            if subscription.callback is not None:
                self._start_delivery(subscription)

    async def stop(self, drain_timeout: float = DEFAULT_DELIVERY_DRAIN_TIMEOUT) -> None:
        """Close all subscriptions and wait for delivery tasks to finish."""
        self._running = False
        for subscription in self._subscriptions:
            subscription.close()

        tasks = list(self._delivery_tasks.values())
        self._delivery_tasks.clear()
        if not tasks:
            return

        _, still_running = await asyncio.wait(tasks, timeout=drain_timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            logger.warning(f"{len(still_running)} event subscribers did not drain in time")
            await asyncio.gather(*still_running, return_exceptions=True)

    def _start_delivery(self, subscription: Subscription) -> None:
        if subscription in self._delivery_tasks:
            return
        self._delivery_tasks[subscription] = asyncio.create_task(
            self._deliver(subscription), name="event-delivery"
        )

    async def _deliver(self, subscription: Subscription) -> None:
        async for event in subscription:
            try:
                result = subscription.callback(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.exception(f"Event subscriber failed on {event.type.value}: {e}")
