"""Tracker implementation for the chat audit trail."""

import uuid
from datetime import datetime, timezone
from typing import Protocol

from ..event_bus import IEventBus
from ..models import DomainEvent, Topic, TraceEvent
from ..storage import IStorage

# Topic -> trace event_type
TOPIC_EVENT_TYPES = {
    Topic.MESSAGE_CREATED: "message_created",
    Topic.MESSAGE_PINNED: "message_pinned",
    Topic.MESSAGE_DELETED: "message_deleted",
}


class ITracker(Protocol):
    """Creating TraceEvents. Two channels: EventBus subscription + direct calls."""

    async def track(self, event_type: str, actor: str, data: dict) -> None:
        """Create TraceEvent and save to Storage."""
        ...

    async def stop(self) -> None:
        """Stop tracker."""
        ...


class Tracker:
    """Creates TraceEvents via EventBus subscription and direct track() calls."""

    def __init__(self, event_bus: IEventBus, storage: IStorage):
        self._event_bus = event_bus
        self._storage = storage

    async def start(self) -> None:
        """Subscribe to all EventBus topics."""
        for topic in Topic:
            self._event_bus.subscribe(topic, self._handle_domain_event)

    async def _handle_domain_event(self, event: DomainEvent) -> None:
        """Handle incoming DomainEvent from EventBus."""
        data = {
            "project_id": event.project_id,
            "message_id": event.payload.get("id") or event.payload.get("messageId"),
        }
        if event.topic == Topic.MESSAGE_PINNED:
            data["is_pinned"] = event.payload.get("isPinned")
        elif event.topic == Topic.MESSAGE_CREATED:
            data["content_summary"] = str(event.payload.get("message", ""))[:100]
            data["attachment_count"] = len(event.payload.get("attachments", []))

        await self.track(
            event_type=TOPIC_EVENT_TYPES[event.topic],
            actor=event.actor_id,
            data=data,
        )

    async def track(self, event_type: str, actor: str, data: dict) -> None:
        """Create TraceEvent and save to Storage."""
        trace_event = TraceEvent(
            id=str(uuid.uuid4()),
            event_type=event_type,
            actor=actor,
            data=data,
            timestamp=datetime.now(timezone.utc),
        )
        await self._storage.save_trace_event(trace_event)

    async def stop(self) -> None:
        """Unsubscribe from EventBus."""
        for topic in Topic:
            self._event_bus.unsubscribe(topic, self._handle_domain_event)
