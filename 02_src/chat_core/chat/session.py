"""Per-connection chat session state machine.

    DISCONNECTED --connect--> CONNECTED --join-project--> JOINED
    JOINED --leave-project (last room)--> CONNECTED
    any --disconnect--> DISCONNECTED

Typing is a transient substate of JOINED tracked per room. The user id is
fixed by the transport handshake; ids and roles inside event payloads are
never used for authorization.
"""

import json
from enum import Enum
from typing import Any, Awaitable, Callable

from pydantic import ValidationError as PydanticValidationError

from ..errors import AuthorizationError, ChatError, ValidationError
from ..logging_config import get_logger
from .events import ClientEvent, IConnection, ServerEvent
from .payloads import (
    EventFrame,
    JoinProjectPayload,
    LeaveProjectPayload,
    MessageActionPayload,
    SendMessagePayload,
    TypingPayload,
)
from .service import ChatService

logger = get_logger(__name__)

GENERIC_ERROR = "Something went wrong, please try again"


class SessionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    JOINED = "joined"


class ChatSession:
    """Drives one connection through the chat protocol."""

    def __init__(self, connection: IConnection, service: ChatService, user_id: str):
        self._connection = connection
        self._service = service
        self._user_id = user_id
        self._connected = False
        self._typing: set[str] = set()

        self._handlers: dict[ClientEvent, Callable[[dict], Awaitable[None]]] = {
            ClientEvent.JOIN_PROJECT: self._on_join_project,
            ClientEvent.LEAVE_PROJECT: self._on_leave_project,
            ClientEvent.SEND_MESSAGE: self._on_send_message,
            ClientEvent.PIN_MESSAGE: self._on_pin_message,
            ClientEvent.UNPIN_MESSAGE: self._on_unpin_message,
            ClientEvent.DELETE_MESSAGE: self._on_delete_message,
            ClientEvent.TYPING: self._on_typing,
        }

    @property
    def connection(self) -> IConnection:
        return self._connection

    @property
    def user_id(self) -> str:
        return self._user_id

    @property
    def joined_projects(self) -> set[str]:
        # Registry is the source of truth: a failed delivery may purge us
        return self._service.rooms_of(self._connection)

    @property
    def state(self) -> SessionState:
        if not self._connected:
            return SessionState.DISCONNECTED
        if self.joined_projects:
            return SessionState.JOINED
        return SessionState.CONNECTED

    def is_typing(self, project_id: str) -> bool:
        return project_id in self._typing and project_id in self.joined_projects

    def connect(self) -> None:
        """Transport accepted the connection."""
        if self._connected:
            raise RuntimeError("Session already connected")
        self._connected = True

    async def disconnect(self) -> None:
        """Transport dropped or closed: purge all memberships."""
        if not self._connected:
            return
        self._connected = False
        self._typing.clear()
        await self._service.disconnect(self._connection)

    async def handle_frame(self, raw: str | bytes | dict) -> None:
        """Parse one inbound frame and dispatch it."""
        try:
            data = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
            frame = EventFrame.model_validate(data)
        except (json.JSONDecodeError, UnicodeDecodeError, PydanticValidationError):
            await self._emit_error(ValidationError("Malformed frame"), "frame")
            return

        await self.handle(frame.event, frame.data)

    async def handle(self, event: str, data: dict[str, Any]) -> None:
        """Handle one client event; rejections go to this connection only."""
        try:
            if not self._connected:
                raise ValidationError("Connection is not open")
            try:
                client_event = ClientEvent(event)
            except ValueError:
                raise ValidationError(f"Unknown event: {event}") from None

            await self._handlers[client_event](data)

        except ChatError as e:
            await self._service.record_rejection(self._user_id, event, e)
            await self._emit_error(e, event)
        except Exception:
            logger.exception("Unhandled error while processing %s", event)
            await self._emit_error(None, event)

    # Handlers
    async def _on_join_project(self, data: dict) -> None:
        payload = self._parse(JoinProjectPayload, data, ClientEvent.JOIN_PROJECT)
        self._check_user(payload.user_id)
        await self._service.join_project(self._connection, payload.project_id, self._user_id)

    async def _on_leave_project(self, data: dict) -> None:
        payload = self._parse(LeaveProjectPayload, data, ClientEvent.LEAVE_PROJECT)
        self._typing.discard(payload.project_id)
        await self._service.leave_project(self._connection, payload.project_id)

    async def _on_send_message(self, data: dict) -> None:
        payload = self._parse(SendMessagePayload, data, ClientEvent.SEND_MESSAGE)
        self._check_user(payload.user_id)
        if self.state != SessionState.JOINED:
            raise AuthorizationError("Join the project chat before sending messages")
        await self._service.send_message(
            payload.project_id,
            self._user_id,
            payload.message,
            payload.attachments,
            connection=self._connection,
        )

    async def _on_pin_message(self, data: dict) -> None:
        payload = self._parse(MessageActionPayload, data, ClientEvent.PIN_MESSAGE)
        self._check_user(payload.user_id)
        await self._service.toggle_pin(
            payload.message_id,
            self._user_id,
            connection=self._connection,
            project_id=payload.project_id,
        )

    async def _on_unpin_message(self, data: dict) -> None:
        payload = self._parse(MessageActionPayload, data, ClientEvent.UNPIN_MESSAGE)
        self._check_user(payload.user_id)
        await self._service.unpin_message(
            payload.message_id,
            self._user_id,
            connection=self._connection,
            project_id=payload.project_id,
        )

    async def _on_delete_message(self, data: dict) -> None:
        payload = self._parse(MessageActionPayload, data, ClientEvent.DELETE_MESSAGE)
        self._check_user(payload.user_id)
        await self._service.delete_message(
            payload.message_id,
            self._user_id,
            connection=self._connection,
            project_id=payload.project_id,
        )

    async def _on_typing(self, data: dict) -> None:
        payload = self._parse(TypingPayload, data, ClientEvent.TYPING)
        self._check_user(payload.user_id)
        if payload.is_typing:
            self._typing.add(payload.project_id)
        else:
            self._typing.discard(payload.project_id)
        await self._service.typing(
            self._connection,
            payload.project_id,
            self._user_id,
            payload.user_name,
            payload.is_typing,
        )

    # Helpers
    def _parse(self, model, data: dict, event: ClientEvent):
        try:
            return model.model_validate(data or {})
        except PydanticValidationError:
            raise ValidationError(f"Malformed {event.value} payload") from None

    def _check_user(self, claimed_user_id: str | None) -> None:
        if claimed_user_id is not None and claimed_user_id != self._user_id:
            raise AuthorizationError("User id does not match the authenticated session")

    async def _emit_error(self, error: ChatError | None, event: str) -> None:
        message = error.message if error is not None else GENERIC_ERROR
        logger.info(
            "Rejected %s: %s",
            event,
            message,
            extra={"context": {"user_id": self._user_id, "connection_id": self._connection.connection_id}},
        )
        try:
            await self._connection.send(ServerEvent.ERROR.value, {"message": message})
        except Exception as e:
            logger.warning("Could not deliver error to %s: %s", self._connection.connection_id, e)
