"""EventBus implementation for chat domain events."""

import asyncio
import uuid
from typing import Awaitable, Callable, Protocol

from ..logging_config import get_logger
from ..models import DomainEvent, Topic
from ..storage import IStorage

logger = get_logger(__name__)


TopicHandler = Callable[[DomainEvent], Awaitable[None]]


class IEventBus(Protocol):
    """In-memory pub/sub for confirmed chat mutations."""

    def subscribe(self, topic: Topic, handler: TopicHandler) -> None:
        """Subscribe a handler to a topic."""
        ...

    def unsubscribe(self, topic: Topic, handler: TopicHandler) -> None:
        """Remove a handler from a topic."""
        ...

    async def publish(self, event: DomainEvent) -> None:
        """Publish DomainEvent: calls subscriber callbacks, persists to Storage."""
        ...


class EventBus:
    """In-memory pub/sub event bus."""

    def __init__(self, storage: IStorage):
        self._storage = storage
        self._subscribers: dict[Topic, list[TopicHandler]] = {
            topic: [] for topic in Topic
        }

    def subscribe(self, topic: Topic, handler: TopicHandler) -> None:
        """Subscribe a handler to a topic."""
        self._subscribers[topic].append(handler)

    def unsubscribe(self, topic: Topic, handler: TopicHandler) -> None:
        """Remove a handler from a topic (no-op if absent)."""
        handlers = self._subscribers.get(topic, [])
        if handler in handlers:
            handlers.remove(handler)

    async def publish(self, event: DomainEvent) -> None:
        """Publish DomainEvent: calls subscriber callbacks, persists to Storage."""
        if not event.id:
            event.id = str(uuid.uuid4())

        handlers = list(self._subscribers.get(event.topic, []))

        # Call all handlers concurrently
        if handlers:
            results = await asyncio.gather(
                *[handler(event) for handler in handlers],
                return_exceptions=True,
            )

            for i, result in enumerate(results):
                if isinstance(result, Exception):
                    logger.error(
                        "Error in %s handler %s: %s", event.topic.value, i, result
                    )

        await self._storage.save_domain_event(event)
