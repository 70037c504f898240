"""Error taxonomy for the chat core.

Every rejection raised while handling a chat event derives from ChatError so
that the WebSocket and REST layers can turn it into a connection-local
``error`` frame or an HTTP status without inspecting messages.
"""


class ChatError(Exception):
    """Base class for chat failures reported back to the originator."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthorizationError(ChatError):
    """Actor lacks the role or capability required for the operation."""

    status_code = 403


class ValidationError(ChatError):
    """Malformed payload or message content rejected before persistence."""

    status_code = 400


class NotFoundError(ChatError):
    """Referenced message does not exist."""

    status_code = 404


class PersistenceError(ChatError):
    """Message store failure."""

    status_code = 500


class TransportError(ChatError):
    """Delivery to a connection failed (closed or dead socket)."""

    status_code = 500


class UnknownCapabilityError(ValueError):
    """A capability name outside the Capability enum was evaluated."""
