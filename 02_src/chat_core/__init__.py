"""Project chat core."""

from .app import Application, IApplication
from .chat import (
    Broadcaster,
    ChatService,
    ChatSession,
    ConversationState,
    IChatService,
    RoomRegistry,
)
from .errors import (
    AuthorizationError,
    ChatError,
    NotFoundError,
    PersistenceError,
    TransportError,
    UnknownCapabilityError,
    ValidationError,
)
from .event_bus import EventBus, IEventBus
from .files import IFileStore, LocalFileStore
from .models import (
    Actor,
    Capability,
    ChatMessage,
    DomainEvent,
    Identity,
    NewChatMessage,
    Role,
    SenderSnapshot,
    Topic,
    TraceEvent,
)
from .permissions import IPermissionEvaluator, PermissionEvaluator
from .storage import IStorage, Storage
from .tracker import ITracker, Tracker

__all__ = [
    # Application
    "Application",
    "IApplication",
    # Models
    "Actor",
    "Capability",
    "ChatMessage",
    "DomainEvent",
    "Identity",
    "NewChatMessage",
    "Role",
    "SenderSnapshot",
    "Topic",
    "TraceEvent",
    # Errors
    "AuthorizationError",
    "ChatError",
    "NotFoundError",
    "PersistenceError",
    "TransportError",
    "UnknownCapabilityError",
    "ValidationError",
    # Components
    "IStorage",
    "Storage",
    "IEventBus",
    "EventBus",
    "ITracker",
    "Tracker",
    "IPermissionEvaluator",
    "PermissionEvaluator",
    "IFileStore",
    "LocalFileStore",
    "Broadcaster",
    "RoomRegistry",
    "IChatService",
    "ChatService",
    "ChatSession",
    "ConversationState",
]
