"""Realtime project chat."""

from .broadcaster import Broadcaster
from .events import ClientEvent, IConnection, ServerEvent
from .reconcile import ConversationState
from .registry import Membership, RoomRegistry
from .service import ChatService, IChatService
from .session import ChatSession, SessionState

__all__ = [
    "Broadcaster",
    "ChatService",
    "ChatSession",
    "ClientEvent",
    "ConversationState",
    "IChatService",
    "IConnection",
    "Membership",
    "RoomRegistry",
    "ServerEvent",
    "SessionState",
]
