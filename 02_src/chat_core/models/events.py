"""Domain event models published on the EventBus."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Topic(str, Enum):
    """EventBus topics."""

    MESSAGE_CREATED = "message.created"
    MESSAGE_PINNED = "message.pinned"
    MESSAGE_DELETED = "message.deleted"


@dataclass
class DomainEvent:
    """A confirmed chat mutation exposed to other parts of the system."""

    id: str
    topic: Topic
    project_id: str
    payload: dict  # varies by topic
    actor_id: str  # user who caused the event
    timestamp: datetime
