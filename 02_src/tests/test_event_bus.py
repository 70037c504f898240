"""Tests for EventBus."""

from datetime import datetime, timezone

import pytest

from chat_core.models import DomainEvent, Topic


def make_event(topic: Topic = Topic.MESSAGE_CREATED, event_id: str = "de1") -> DomainEvent:
    return DomainEvent(
        id=event_id,
        topic=topic,
        project_id="p1",
        payload={"id": "m1", "message": "hello"},
        actor_id="alice",
        timestamp=datetime.now(timezone.utc),
    )


class TestEventBusSubscribe:
    """Tests for EventBus subscription."""

    @pytest.mark.asyncio
    async def test_subscribe_multiple_handlers(self, event_bus):
        """Test subscribing multiple handlers to same topic."""

        async def handler1(event: DomainEvent):
            pass

        async def handler2(event: DomainEvent):
            pass

        event_bus.subscribe(Topic.MESSAGE_CREATED, handler1)
        event_bus.subscribe(Topic.MESSAGE_CREATED, handler2)

        assert len(event_bus._subscribers[Topic.MESSAGE_CREATED]) == 2

    @pytest.mark.asyncio
    async def test_unsubscribe(self, event_bus):
        calls = []

        async def handler(event: DomainEvent):
            calls.append(event)

        event_bus.subscribe(Topic.MESSAGE_CREATED, handler)
        event_bus.unsubscribe(Topic.MESSAGE_CREATED, handler)
        event_bus.unsubscribe(Topic.MESSAGE_CREATED, handler)

        await event_bus.publish(make_event())
        assert calls == []


class TestEventBusPublish:
    """Tests for EventBus publishing."""

    @pytest.mark.asyncio
    async def test_publish_reaches_topic_subscribers_only(self, event_bus):
        created, pinned = [], []

        async def on_created(event: DomainEvent):
            created.append(event)

        async def on_pinned(event: DomainEvent):
            pinned.append(event)

        event_bus.subscribe(Topic.MESSAGE_CREATED, on_created)
        event_bus.subscribe(Topic.MESSAGE_PINNED, on_pinned)

        await event_bus.publish(make_event())

        assert [e.id for e in created] == ["de1"]
        assert pinned == []

    @pytest.mark.asyncio
    async def test_publish_persists_event(self, event_bus, storage):
        await event_bus.publish(make_event())

        events = await storage.get_domain_events()
        assert len(events) == 1
        assert events[0].id == "de1"
        assert events[0].payload == {"id": "m1", "message": "hello"}

    @pytest.mark.asyncio
    async def test_publish_assigns_missing_id(self, event_bus, storage):
        await event_bus.publish(make_event(event_id=""))

        events = await storage.get_domain_events()
        assert events[0].id

    @pytest.mark.asyncio
    async def test_handler_error_does_not_stop_others(self, event_bus, storage):
        """A failing subscriber is logged; the others and persistence still run."""
        calls = []

        async def failing(event: DomainEvent):
            raise RuntimeError("boom")

        async def working(event: DomainEvent):
            calls.append(event.id)

        event_bus.subscribe(Topic.MESSAGE_DELETED, failing)
        event_bus.subscribe(Topic.MESSAGE_DELETED, working)

        await event_bus.publish(make_event(Topic.MESSAGE_DELETED))

        assert calls == ["de1"]
        assert len(await storage.get_domain_events()) == 1
