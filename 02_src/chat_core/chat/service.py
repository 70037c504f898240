"""Chat service: the operations shared by the WebSocket protocol and REST routes."""

import asyncio
import uuid
import weakref
from datetime import datetime, timezone
from typing import Awaitable, Protocol, TypeVar

from ..errors import (
    AuthorizationError,
    ChatError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from ..event_bus import IEventBus
from ..files import IFileStore, UploadedFile, sanitize_attachments, validate_attachments
from ..logging_config import get_logger
from ..models import (
    Actor,
    ChatMessage,
    DomainEvent,
    Identity,
    NewChatMessage,
    SenderSnapshot,
    Topic,
)
from ..permissions import IPermissionEvaluator
from ..storage import IIdentityProvider, IMessageStore
from ..tracker import ITracker
from .broadcaster import Broadcaster
from .events import IConnection, ServerEvent
from .registry import RoomRegistry

logger = get_logger(__name__)

T = TypeVar("T")


class IChatService(Protocol):
    """Realtime project chat operations."""

    async def join_project(
        self, connection: IConnection, project_id: str, user_id: str
    ) -> list[ChatMessage]:
        """Register membership and push the history snapshot to the joiner."""
        ...

    async def leave_project(self, connection: IConnection, project_id: str) -> None:
        """Remove membership (no broadcast)."""
        ...

    async def disconnect(self, connection: IConnection) -> list[str]:
        """Purge all memberships of a dropped connection."""
        ...

    async def send_message(
        self,
        project_id: str,
        user_id: str,
        text: str | None,
        attachments: list[str] | None = None,
        connection: IConnection | None = None,
    ) -> ChatMessage:
        """Persist a message and broadcast new-message to the room."""
        ...

    async def toggle_pin(
        self,
        message_id: str,
        user_id: str,
        connection: IConnection | None = None,
        project_id: str | None = None,
    ) -> ChatMessage:
        """Flip the pin state of a message (BOSS only)."""
        ...

    async def unpin_message(
        self,
        message_id: str,
        user_id: str,
        connection: IConnection | None = None,
        project_id: str | None = None,
    ) -> ChatMessage:
        """Clear the pin of a message (BOSS only)."""
        ...

    async def delete_message(
        self,
        message_id: str,
        user_id: str,
        connection: IConnection | None = None,
        project_id: str | None = None,
    ) -> None:
        """Delete a message (sender or BOSS)."""
        ...

    async def typing(
        self,
        connection: IConnection,
        project_id: str,
        user_id: str,
        user_name: str,
        is_typing: bool,
    ) -> None:
        """Relay a typing indicator to the other room members."""
        ...


class ChatService:
    """Realtime project chat with permission-gated mutations."""

    def __init__(
        self,
        store: IMessageStore,
        identities: IIdentityProvider,
        registry: RoomRegistry,
        broadcaster: Broadcaster,
        evaluator: IPermissionEvaluator,
        event_bus: IEventBus | None = None,
        tracker: ITracker | None = None,
        file_store: IFileStore | None = None,
    ):
        self._store = store
        self._identities = identities
        self._registry = registry
        self._broadcaster = broadcaster
        self._evaluator = evaluator
        self._event_bus = event_bus
        self._tracker = tracker
        self._file_store = file_store

        # project_id -> lock spanning persist + broadcast; an entry lives only
        # while some operation holds or awaits it
        self._room_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    @property
    def registry(self) -> RoomRegistry:
        return self._registry

    # Membership
    async def join_project(
        self, connection: IConnection, project_id: str, user_id: str
    ) -> list[ChatMessage]:
        """Register membership and push the history snapshot to the joiner."""
        identity = await self._require_identity(user_id)

        async with self._room_lock(project_id):
            self._registry.join(connection, project_id, identity.id, identity.role)
            history = await self._persist(self._store.list_by_project(project_id))
            await self._broadcaster.send_to(
                connection,
                ServerEvent.PROJECT_MESSAGES,
                [message.to_payload() for message in history],
            )

        logger.info(
            "User joined project chat",
            extra={"context": {"project_id": project_id, "user_id": identity.id, "history": len(history)}},
        )
        return history

    async def leave_project(self, connection: IConnection, project_id: str) -> None:
        """Remove membership (no broadcast)."""
        self._registry.leave(connection, project_id)

    async def disconnect(self, connection: IConnection) -> list[str]:
        """Purge all memberships of a dropped connection."""
        rooms = self._registry.disconnect(connection)
        if rooms:
            logger.info(
                "Connection disconnected",
                extra={"context": {"connection_id": connection.connection_id, "rooms": rooms}},
            )
        return rooms

    def rooms_of(self, connection: IConnection) -> set[str]:
        return self._registry.rooms_of(connection)

    # Messages
    async def send_message(
        self,
        project_id: str,
        user_id: str,
        text: str | None,
        attachments: list[str] | None = None,
        connection: IConnection | None = None,
    ) -> ChatMessage:
        """
        Persist a message and broadcast new-message to the whole room.

        When called on behalf of a live connection, that connection must be a
        member of the room. The sender's own connections receive the event too
        so their provisional copies can be reconciled.
        """
        if connection is not None and not self._registry.is_member(connection, project_id):
            raise AuthorizationError("Join the project chat before sending messages")

        body = (text or "").strip()
        urls = sanitize_attachments(attachments)
        if not body and not urls:
            raise ValidationError("Message must contain text or at least one attachment")
        validate_attachments(urls)

        identity = await self._require_identity(user_id)

        async with self._room_lock(project_id):
            saved = await self._persist(
                self._store.append(
                    NewChatMessage(
                        project_id=project_id,
                        sender=SenderSnapshot.from_identity(identity),
                        message=body,
                        attachments=urls,
                    )
                )
            )
            payload = saved.to_payload()
            await self._broadcaster.broadcast(project_id, ServerEvent.NEW_MESSAGE, payload)
            await self._publish(Topic.MESSAGE_CREATED, project_id, payload, identity.id)

        return saved

    async def send_message_with_files(
        self,
        project_id: str,
        user_id: str,
        text: str | None,
        files: list[UploadedFile],
    ) -> ChatMessage:
        """
        Store uploads, then send a message carrying their URLs.

        Stored files are removed again if the message is not persisted.
        """
        if self._file_store is None:
            raise RuntimeError("File store not configured")

        if not (text or "").strip() and not files:
            raise ValidationError("Message must contain text or at least one attachment")
        await self._require_identity(user_id)

        urls = await self._file_store.store(files, owner_id=user_id) if files else []
        try:
            return await self.send_message(project_id, user_id, text, urls)
        except Exception:
            if urls:
                await self._file_store.discard(urls)
            raise

    async def toggle_pin(
        self,
        message_id: str,
        user_id: str,
        connection: IConnection | None = None,
        project_id: str | None = None,
    ) -> ChatMessage:
        """Flip the pin state of a message (BOSS only)."""
        return await self._change_pin(message_id, user_id, None, connection, project_id)

    async def pin_message(
        self,
        message_id: str,
        user_id: str,
        connection: IConnection | None = None,
        project_id: str | None = None,
    ) -> ChatMessage:
        """Pin a message (BOSS only). Pinning a pinned message changes nothing."""
        return await self._change_pin(message_id, user_id, True, connection, project_id)

    async def unpin_message(
        self,
        message_id: str,
        user_id: str,
        connection: IConnection | None = None,
        project_id: str | None = None,
    ) -> ChatMessage:
        """Clear the pin of a message (BOSS only). Unpinning twice changes nothing."""
        return await self._change_pin(message_id, user_id, False, connection, project_id)

    async def _change_pin(
        self,
        message_id: str,
        user_id: str,
        pinned: bool | None,
        connection: IConnection | None,
        project_id: str | None,
    ) -> ChatMessage:
        actor = await self._require_actor(user_id)
        if not self._evaluator.can_pin_messages(actor):
            raise AuthorizationError("Only BOSS can pin messages")

        message = await self._require_message(message_id)
        self._check_room(message, connection, project_id)

        async with self._room_lock(message.project_id):
            current = await self._require_message(message_id)
            target = (not current.is_pinned) if pinned is None else pinned

            if current.is_pinned == target:
                # Nothing to persist; let the originator converge on the stored state
                if connection is not None:
                    await self._broadcaster.send_to(
                        connection, ServerEvent.MESSAGE_PINNED, current.to_payload()
                    )
                return current

            updated = await self._persist(
                self._store.set_pinned(message_id, target, actor.user_id)
            )
            payload = updated.to_payload()
            await self._broadcaster.broadcast(
                updated.project_id, ServerEvent.MESSAGE_PINNED, payload
            )
            await self._publish(Topic.MESSAGE_PINNED, updated.project_id, payload, actor.user_id)

        return updated

    async def delete_message(
        self,
        message_id: str,
        user_id: str,
        connection: IConnection | None = None,
        project_id: str | None = None,
    ) -> None:
        """
        Hard-delete a message and broadcast message-deleted.

        Deleting an id that is already deleted succeeds without a broadcast;
        the originator alone is told so duplicate retries converge.
        """
        actor = await self._require_actor(user_id)

        if await self._persist(self._store.is_deleted(message_id)):
            await self._ack_deleted(connection, message_id)
            return

        message = await self._require_message(message_id)
        if not self._evaluator.can_delete_message(actor, message):
            raise AuthorizationError("You can only delete your own messages")
        self._check_room(message, connection, project_id)

        async with self._room_lock(message.project_id):
            if await self._persist(self._store.is_deleted(message_id)):
                await self._ack_deleted(connection, message_id)
                return

            await self._persist(self._store.delete(message_id, by=actor.user_id))
            payload = {"messageId": message_id}
            await self._broadcaster.broadcast(
                message.project_id, ServerEvent.MESSAGE_DELETED, payload
            )
            await self._publish(Topic.MESSAGE_DELETED, message.project_id, payload, actor.user_id)

    async def typing(
        self,
        connection: IConnection,
        project_id: str,
        user_id: str,
        user_name: str,
        is_typing: bool,
    ) -> None:
        """Relay a typing indicator to the other room members (best-effort)."""
        if not self._registry.is_member(connection, project_id):
            logger.debug("Ignoring typing for unjoined project %s", project_id)
            return

        await self._broadcaster.broadcast(
            project_id,
            ServerEvent.USER_TYPING,
            {"userId": user_id, "userName": user_name, "isTyping": is_typing},
            exclude=connection,
        )

    # Queries
    async def get_identity(self, user_id: str) -> Identity | None:
        """Look up a user; store failures surface as PersistenceError."""
        return await self._persist(self._identities.get_identity(user_id))

    async def get_project_messages(self, project_id: str, user_id: str) -> list[ChatMessage]:
        """Ordered history of a project (any known user may read)."""
        await self._require_identity(user_id)
        return await self._persist(self._store.list_by_project(project_id))

    async def get_pinned_messages(self, project_id: str, user_id: str) -> list[ChatMessage]:
        """Pinned messages of a project, most recently pinned first."""
        await self._require_identity(user_id)
        return await self._persist(self._store.list_pinned(project_id))

    # Auditing
    async def record_rejection(self, user_id: str, operation: str, error: ChatError) -> None:
        """Store a trace event for an operation rejected for this user."""
        if self._tracker is None:
            return
        try:
            await self._tracker.track(
                event_type="operation_rejected",
                actor=user_id,
                data={
                    "operation": operation,
                    "error": type(error).__name__,
                    "reason": error.message,
                },
            )
        except Exception:
            logger.exception("Failed to record rejected %s", operation)

    # Helpers
    async def _persist(self, operation: Awaitable[T]) -> T:
        try:
            return await operation
        except ChatError:
            raise
        except Exception as e:
            logger.exception("Chat store operation failed")
            raise PersistenceError("Chat storage is unavailable, please retry") from e

    async def _require_identity(self, user_id: str) -> Identity:
        identity = await self._persist(self._identities.get_identity(user_id))
        if identity is None:
            raise AuthorizationError("Unknown user")
        return identity

    async def _require_actor(self, user_id: str) -> Actor:
        actor = await self._persist(self._identities.get_role_and_flags(user_id))
        if actor is None:
            raise AuthorizationError("Unknown user")
        return actor

    async def _require_message(self, message_id: str) -> ChatMessage:
        message = await self._persist(self._store.get_message(message_id))
        if message is None:
            raise NotFoundError("Message not found")
        return message

    def _room_lock(self, project_id: str) -> asyncio.Lock:
        lock = self._room_locks.get(project_id)
        if lock is None:
            lock = asyncio.Lock()
            self._room_locks[project_id] = lock
        return lock

    def _check_room(
        self,
        message: ChatMessage,
        connection: IConnection | None,
        project_id: str | None,
    ) -> None:
        if project_id is not None and project_id != message.project_id:
            raise ValidationError("Message does not belong to this project")
        if connection is not None and not self._registry.is_member(connection, message.project_id):
            raise AuthorizationError("Join the project chat before changing its messages")

    async def _ack_deleted(self, connection: IConnection | None, message_id: str) -> None:
        if connection is not None:
            await self._broadcaster.send_to(
                connection, ServerEvent.MESSAGE_DELETED, {"messageId": message_id}
            )

    async def _publish(self, topic: Topic, project_id: str, payload: dict, actor_id: str) -> None:
        if self._event_bus is None:
            return
        event = DomainEvent(
            id=str(uuid.uuid4()),
            topic=topic,
            project_id=project_id,
            payload=payload,
            actor_id=actor_id,
            timestamp=datetime.now(timezone.utc),
        )
        try:
            await self._event_bus.publish(event)
        except Exception:
            # The mutation is already persisted and broadcast
            logger.exception("Failed to publish %s", topic.value)
