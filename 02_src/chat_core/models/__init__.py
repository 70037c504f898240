"""Core data models for the project chat."""

from .events import DomainEvent, Topic
from .identity import Actor, Capability, Identity, PermissionFlags, Role
from .ids import PROVISIONAL_PREFIX, PersistedId, ProvisionalId, is_provisional
from .messages import ChatMessage, NewChatMessage, SenderSnapshot
from .tracing import TraceEvent

__all__ = [
    # Identity
    "Actor",
    "Capability",
    "Identity",
    "PermissionFlags",
    "Role",
    # Ids
    "PROVISIONAL_PREFIX",
    "PersistedId",
    "ProvisionalId",
    "is_provisional",
    # Messages
    "ChatMessage",
    "NewChatMessage",
    "SenderSnapshot",
    # Events
    "DomainEvent",
    "Topic",
    # Tracing
    "TraceEvent",
]
