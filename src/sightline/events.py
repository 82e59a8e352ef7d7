"""Change notifications for observers of the capture pipeline.

The orchestrator and every session analyzer publish a ChangeEvent whenever
observable state changes (sessions added or removed, a new image, a new
finding, a chat message, the busy flag flipping, a provider error).
Observers subscribe and receive events as an async iterator. A bounded ring
buffer of recent events lets a late subscriber catch up.

Example usage::

    async with bus.subscribe() as events:
        async for event in events:
            render(event)
"""

from __future__ import annotations

import asyncio
import enum
import logging
import uuid
from collections import deque
from datetime import datetime
from typing import Any, AsyncIterator

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

MAX_BUFFER = 200
DEFAULT_QUEUE_SIZE = 1000


class EventKind(str, enum.Enum):
    """Kinds of observable state change."""

    SOURCES_REFRESHED = "sources_refreshed"
    SESSION_ADDED = "session_added"
    SESSION_REMOVED = "session_removed"
    IMAGE_CAPTURED = "image_captured"
    FINDING_ADDED = "finding_added"
    CHAT_MESSAGE_ADDED = "chat_message_added"
    BUSY_CHANGED = "busy_changed"
    ERROR = "error"


class ChangeEvent(BaseModel):
    """A single state-change notification."""

    model_config = ConfigDict(frozen=True)

    event_id: uuid.UUID = Field(default_factory=uuid.uuid4)
    kind: EventKind
    session_id: uuid.UUID | None = Field(default=None, description="Session the change belongs to, if any")
    timestamp: datetime = Field(default_factory=datetime.now)
    data: dict[str, Any] = Field(default_factory=dict)


class Subscription:
    """A subscriber's queue of pending events.

    Iterating yields events until the subscription is closed. When a slow
    subscriber's queue fills up, new events for it are dropped and counted.
    """

    def __init__(self, bus: EventBus, maxsize: int = DEFAULT_QUEUE_SIZE) -> None:
        self._bus = bus
        self._queue: asyncio.Queue[ChangeEvent | None] = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def pending(self) -> list[ChangeEvent]:
        """Drain and return every event queued so far without waiting."""
        events = []
        while not self._queue.empty():
            event = self._queue.get_nowait()
            if event is not None:
                events.append(event)
        return events

    def _deliver(self, event: ChangeEvent) -> None:
        if self._closed:
            return
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning("Subscriber queue full, dropped %s event", event.kind.value)

    def close(self) -> None:
        """Stop receiving events and end any pending iteration."""
        if self._closed:
            return
        self._closed = True
        self._bus._unsubscribe(self)
        if self._queue.full():
            # The end-of-stream marker must always fit
            self._queue.get_nowait()
            self.dropped += 1
        self._queue.put_nowait(None)

    def __aiter__(self) -> AsyncIterator[ChangeEvent]:
        return self

    async def __anext__(self) -> ChangeEvent:
        event = await self._queue.get()
        if event is None:
            raise StopAsyncIteration
        return event

    async def __aenter__(self) -> Subscription:
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        self.close()


class EventBus:
    """Fan-out of ChangeEvents to every current subscriber.

    publish() never blocks and never raises, so it is safe to call from
    any state mutation on the event loop thread.
    """

    def __init__(self, buffer_size: int = MAX_BUFFER) -> None:
        self._subscribers: set[Subscription] = set()
        self._buffer: deque[ChangeEvent] = deque(maxlen=buffer_size)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(
        self,
        kind: EventKind,
        session_id: uuid.UUID | None = None,
        **data: Any,
    ) -> ChangeEvent:
        event = ChangeEvent(kind=kind, session_id=session_id, data=data)
        self._buffer.append(event)
        for subscription in list(self._subscribers):
            subscription._deliver(event)
        logger.debug("Published %s (session=%s)", kind.value, session_id)
        return event

    def subscribe(self, replay: bool = False, maxsize: int = DEFAULT_QUEUE_SIZE) -> Subscription:
        """Register a new subscriber.

        Args:
            replay: If True, the recent-event buffer is queued first so the
                    subscriber can catch up on what it missed.
            maxsize: Bound on the subscriber's pending-event queue.
        """
        subscription = Subscription(self, maxsize=maxsize)
        if replay:
            for event in list(self._buffer):
                subscription._deliver(event)
        self._subscribers.add(subscription)
        return subscription

    def recent(self) -> list[ChangeEvent]:
        """Events still held in the ring buffer, oldest first."""
        return list(self._buffer)

    def _unsubscribe(self, subscription: Subscription) -> None:
        self._subscribers.discard(subscription)
