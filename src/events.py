"""
Event Streaming - In-memory pub/sub for resource lifecycle events.

The provider publishes an event after every state change so that clients
can follow applies as Server-Sent Events (SSE). Subscribers pick the events
they want with an EventFilter; filtering happens on publish so that a busy
resource type cannot fill the queue of a subscriber watching another one.
"""

import asyncio
import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, AsyncIterator, Dict, FrozenSet, Optional, Tuple

logger = logging.getLogger(__name__)


def _json_default(obj: Any) -> str:
    if isinstance(obj, datetime):
        return obj.isoformat()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


class EventType(Enum):
    """What happened to a managed resource."""

    CREATED = "CREATED"
    UPDATED = "UPDATED"
    DELETED = "DELETED"
    REMOVED = "REMOVED"  # remote object vanished, state dropped on read
    DRIFTED = "DRIFTED"
    IMPORTED = "IMPORTED"


@dataclass
class ResourceEvent:
    """Event emitted when managed state changes."""

    event_type: EventType
    resource_type_name: str
    resource_id: str
    state: Optional[Dict[str, Any]]
    timestamp: str

    def to_sse(self) -> str:
        """Format the event as an SSE message."""
        data = json.dumps(
            {
                "event_type": self.event_type.value,
                "resource_type_name": self.resource_type_name,
                "resource_id": self.resource_id,
                "state": self.state,
                "timestamp": self.timestamp,
            },
            default=_json_default,
        )
        return f"event: {self.event_type.value}\ndata: {data}\n\n"

    @classmethod
    def from_state(
        cls,
        event_type: EventType,
        resource_type_name: str,
        resource_id: str,
        state: Optional[Dict[str, Any]] = None,
    ) -> "ResourceEvent":
        """
        Create an event stamped with the current UTC time.

        Args:
            event_type: The type of event.
            resource_type_name: The resource type.
            resource_id: The resource id.
            state: The state after the change, None once it is gone.
        """
        return cls(
            event_type=event_type,
            resource_type_name=resource_type_name,
            resource_id=resource_id,
            state=state,
            timestamp=datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
        )


@dataclass(frozen=True)
class EventFilter:
    """Selects events by resource type, resource id and event type. None matches all."""

    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    event_types: Optional[FrozenSet[EventType]] = None

    def matches(self, event: ResourceEvent) -> bool:
        if self.resource_type and event.resource_type_name != self.resource_type:
            return False
        if self.resource_id and event.resource_id != self.resource_id:
            return False
        if self.event_types and event.event_type not in self.event_types:
            return False
        return True


@dataclass
class _Subscriber:
    queue: asyncio.Queue
    event_filter: EventFilter
    dropped: int = field(default=0)


class EventSubscription:
    """
    Async iterator over the events delivered to one subscriber.

    Iteration ends when the subscriber is removed from the bus.
    """

    def __init__(self, queue: asyncio.Queue):
        self._queue = queue

    def __aiter__(self) -> AsyncIterator[ResourceEvent]:
        return self

    async def __anext__(self) -> ResourceEvent:
        event = await self._queue.get()
        if event is None:
            raise StopAsyncIteration
        return event


class EventBus:
    """
    In-memory pub/sub event bus for resource events.

    Each subscriber owns a bounded ``asyncio.Queue``. Publishing never
    blocks; an event that does not fit in a subscriber's queue is dropped
    for that subscriber and counted.
    """

    def __init__(self, queue_size: int = 256):
        self._queue_size = queue_size
        self._subscribers: Dict[str, _Subscriber] = {}
        self._lock = asyncio.Lock()

    async def publish(self, event: ResourceEvent) -> int:
        """
        Deliver an event to every subscriber whose filter matches.

        Returns:
            The number of subscribers the event was queued for.
        """
        async with self._lock:
            subscribers = list(self._subscribers.items())

        delivered = 0
        for subscriber_id, subscriber in subscribers:
            if not subscriber.event_filter.matches(event):
                continue
            try:
                subscriber.queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                subscriber.dropped += 1
                logger.warning(
                    f"Dropped {event.event_type.value} event for subscriber "
                    f"{subscriber_id}: queue full ({subscriber.dropped} dropped)"
                )
        return delivered

    async def subscribe(
        self, event_filter: Optional[EventFilter] = None
    ) -> Tuple[str, EventSubscription]:
        """
        Register a subscriber.

        Returns:
            A tuple of ``(subscriber_id, EventSubscription)``.
        """
        subscriber_id = str(uuid.uuid4())
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)

        async with self._lock:
            self._subscribers[subscriber_id] = _Subscriber(
                queue=queue, event_filter=event_filter or EventFilter()
            )

        logger.info(f"New event subscriber: {subscriber_id}")
        return subscriber_id, EventSubscription(queue)

    async def unsubscribe(self, subscriber_id: str) -> None:
        """Remove a subscriber and end its iterator. Unknown ids are ignored."""
        async with self._lock:
            subscriber = self._subscribers.pop(subscriber_id, None)

        if subscriber is None:
            return

        # The end-of-stream sentinel must fit even if the queue is full
        while subscriber.queue.full():
            subscriber.queue.get_nowait()
        subscriber.queue.put_nowait(None)
        logger.info(
            f"Unsubscribed: {subscriber_id} ({subscriber.dropped} events dropped)"
        )

    def dropped_count(self, subscriber_id: str) -> int:
        """Number of events dropped for a subscriber because its queue was full."""
        subscriber = self._subscribers.get(subscriber_id)
        return subscriber.dropped if subscriber else 0

    def subscriber_count(self) -> int:
        return len(self._subscribers)
