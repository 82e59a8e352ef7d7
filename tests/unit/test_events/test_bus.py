"""Tests for the change-notification bus."""

from __future__ import annotations

import asyncio
import uuid

import pytest

from sightline.events import ChangeEvent, EventBus, EventKind


class TestEventBus:
    def test_publish_without_subscribers(self, event_bus: EventBus) -> None:
        event = event_bus.publish(EventKind.SOURCES_REFRESHED, sources=[])
        assert isinstance(event, ChangeEvent)
        assert event_bus.recent() == [event]

    def test_fan_out_to_every_subscriber(self, event_bus: EventBus) -> None:
        a = event_bus.subscribe()
        b = event_bus.subscribe()
        session_id = uuid.uuid4()

        event_bus.publish(EventKind.SESSION_ADDED, session_id=session_id)

        for subscription in (a, b):
            events = subscription.pending()
            assert [e.kind for e in events] == [EventKind.SESSION_ADDED]
            assert events[0].session_id == session_id

    def test_replay_delivers_buffered_events_first(self, event_bus: EventBus) -> None:
        event_bus.publish(EventKind.SESSION_ADDED)
        event_bus.publish(EventKind.SESSION_REMOVED)

        late = event_bus.subscribe(replay=True)
        event_bus.publish(EventKind.SOURCES_REFRESHED)

        assert [e.kind for e in late.pending()] == [
            EventKind.SESSION_ADDED,
            EventKind.SESSION_REMOVED,
            EventKind.SOURCES_REFRESHED,
        ]

    def test_buffer_is_bounded(self) -> None:
        bus = EventBus(buffer_size=3)
        for _ in range(5):
            bus.publish(EventKind.IMAGE_CAPTURED)
        assert len(bus.recent()) == 3

    def test_slow_subscriber_drops_instead_of_blocking(self, event_bus: EventBus) -> None:
        subscription = event_bus.subscribe(maxsize=2)
        for _ in range(5):
            event_bus.publish(EventKind.IMAGE_CAPTURED)

        assert len(subscription.pending()) == 2
        assert subscription.dropped == 3

    def test_closed_subscription_stops_receiving(self, event_bus: EventBus) -> None:
        subscription = event_bus.subscribe()
        subscription.close()
        event_bus.publish(EventKind.ERROR)

        assert subscription.closed
        assert subscription.pending() == []
        assert event_bus.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_async_iteration_ends_on_close(self, event_bus: EventBus) -> None:
        received = []

        async def consume() -> None:
            async with event_bus.subscribe() as events:
                async for event in events:
                    received.append(event.kind)
                    if len(received) == 2:
                        events.close()

        consumer = asyncio.create_task(consume())
        await asyncio.sleep(0)
        event_bus.publish(EventKind.SESSION_ADDED)
        event_bus.publish(EventKind.FINDING_ADDED)
        await asyncio.wait_for(consumer, timeout=1.0)

        assert received == [EventKind.SESSION_ADDED, EventKind.FINDING_ADDED]
        assert event_bus.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_iteration_ends_when_closed_with_full_queue(self, event_bus: EventBus) -> None:
        subscription = event_bus.subscribe(maxsize=2)
        event_bus.publish(EventKind.SESSION_ADDED)
        event_bus.publish(EventKind.FINDING_ADDED)
        subscription.close()

        async def consume() -> list[EventKind]:
            return [event.kind async for event in subscription]

        kinds = await asyncio.wait_for(consume(), timeout=1.0)

        # Oldest event makes room for the end-of-stream marker
        assert kinds == [EventKind.FINDING_ADDED]
        assert subscription.dropped == 1
