"""Wire event names and the connection contract."""

from enum import Enum
from typing import Any, Protocol


class ClientEvent(str, Enum):
    """Events sent by clients."""

    JOIN_PROJECT = "join-project"
    LEAVE_PROJECT = "leave-project"
    SEND_MESSAGE = "send-message"
    PIN_MESSAGE = "pin-message"
    UNPIN_MESSAGE = "unpin-message"
    DELETE_MESSAGE = "delete-message"
    TYPING = "typing"


class ServerEvent(str, Enum):
    """Events sent by the server."""

    PROJECT_MESSAGES = "project-messages"
    NEW_MESSAGE = "new-message"
    MESSAGE_PINNED = "message-pinned"
    MESSAGE_DELETED = "message-deleted"
    USER_TYPING = "user-typing"
    ERROR = "error"


class IConnection(Protocol):
    """A live client connection the broadcaster can deliver to."""

    connection_id: str

    async def send(self, event: str, payload: Any) -> None:
        """Queue one event for delivery. Raises TransportError if the connection is dead."""
        ...
