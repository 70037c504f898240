"""SQLite storage implementation."""

import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

import aiosqlite

from ..config import resolve_db_path
from ..errors import NotFoundError
from ..models import (
    Actor,
    ChatMessage,
    DomainEvent,
    Identity,
    NewChatMessage,
    PermissionFlags,
    PersistedId,
    Role,
    SenderSnapshot,
    Topic,
    TraceEvent,
)
from ..permissions import normalize_flags

MESSAGE_COLUMNS = """
    id, project_id, sender_id, sender_name, sender_email, sender_role,
    message, attachments, is_pinned, pinned_by, pinned_at, created_at, updated_at
"""


class IMessageStore(Protocol):
    """Persisted chat log."""

    async def append(self, message: NewChatMessage) -> ChatMessage:
        """Persist a message and allocate its id."""
        ...

    async def get_message(self, message_id: str) -> ChatMessage | None:
        """Get a message by id."""
        ...

    async def list_by_project(self, project_id: str) -> list[ChatMessage]:
        """List a project's messages in persisted order."""
        ...

    async def list_pinned(self, project_id: str) -> list[ChatMessage]:
        """List a project's pinned messages, most recently pinned first."""
        ...

    async def set_pinned(
        self, message_id: str, pinned: bool, by: str | None
    ) -> ChatMessage:
        """Set or clear the pin of a message."""
        ...

    async def delete(self, message_id: str, by: str | None = None) -> None:
        """Hard-delete a message, leaving a tombstone."""
        ...

    async def is_deleted(self, message_id: str) -> bool:
        """Check whether a message id was deleted."""
        ...


class IIdentityProvider(Protocol):
    """Identity and role lookup."""

    async def get_identity(self, user_id: str) -> Identity | None:
        """Get a user's identity."""
        ...

    async def get_role_and_flags(self, user_id: str) -> Actor | None:
        """Get role and permission flags for a user."""
        ...


class IStorage(IMessageStore, IIdentityProvider, Protocol):
    """Persistent storage for all system data (SQLite)."""

    async def init(self) -> None:
        """Initialize database and create tables."""
        ...

    async def close(self) -> None:
        """Close database connection."""
        ...

    # Identities
    async def save_identity(self, identity: Identity) -> None:
        """Save a user identity."""
        ...

    async def get_identities(self, user_ids: list[str]) -> list[Identity]:
        """Get several identities (unknown ids are skipped)."""
        ...

    async def update_flags(self, user_id: str, flags: PermissionFlags) -> None:
        """Replace a user's permission flags."""
        ...

    # Domain events
    async def save_domain_event(self, event: DomainEvent) -> None:
        """Save a domain event."""
        ...

    async def get_domain_events(
        self, project_id: str | None = None, limit: int = 100
    ) -> list[DomainEvent]:
        """Get domain events (newest first)."""
        ...

    # TraceEvents
    async def save_trace_event(self, event: TraceEvent) -> None:
        """Save a trace event."""
        ...

    async def get_trace_events(
        self,
        after: datetime | None = None,
        event_types: list[str] | None = None,
        actor: str | None = None,
        limit: int = 100,
    ) -> list[TraceEvent]:
        """Get trace events with optional filters."""
        ...

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        ...


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_ts(value: str | None) -> datetime | None:
    if not value:
        return None
    ts = datetime.fromisoformat(value)
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def _row_to_message(row) -> ChatMessage:
    return ChatMessage(
        id=row[0],
        project_id=row[1],
        sender_id=row[2],
        sender=SenderSnapshot(
            id=row[2],
            name=row[3],
            email=row[4],
            role=Role(row[5]),
        ),
        message=row[6],
        attachments=json.loads(row[7]),
        is_pinned=bool(row[8]),
        pinned_by=row[9],
        pinned_at=_parse_ts(row[10]),
        created_at=_parse_ts(row[11]),
        updated_at=_parse_ts(row[12]),
    )


def _row_to_identity(row) -> Identity:
    return Identity(
        id=row[0],
        company_id=row[1],
        name=row[2],
        email=row[3],
        role=Role(row[4]),
        flags=normalize_flags(json.loads(row[5])),
    )


class Storage:
    """SQLite storage implementation."""

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            self._db_path = resolve_db_path()
        else:
            self._db_path = resolve_db_path(db_path)
        self._conn: aiosqlite.Connection | None = None

    def _require_conn(self) -> aiosqlite.Connection:
        if not self._conn:
            raise RuntimeError("Storage not initialized")
        return self._conn

    async def init(self) -> None:
        """Initialize database and create tables."""
        self._conn = await aiosqlite.connect(self._db_path)

        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, "r", encoding="utf-8") as f:
            schema_sql = f.read()
        await self._conn.executescript(schema_sql)
        await self._conn.commit()

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    # Messages
    async def append(self, message: NewChatMessage) -> ChatMessage:
        """Persist a message and allocate its id."""
        conn = self._require_conn()

        msg_id = PersistedId.generate()
        ts = _now()

        await conn.execute(
            """
            INSERT INTO chat_messages (
                id, project_id, sender_id, sender_name, sender_email, sender_role,
                message, attachments, is_pinned, created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, 0, ?, ?)
            """,
            (
                msg_id,
                message.project_id,
                message.sender.id,
                message.sender.name,
                message.sender.email,
                message.sender.role.value,
                message.message,
                json.dumps(message.attachments),
                ts.isoformat(),
                ts.isoformat(),
            ),
        )
        await conn.commit()

        return ChatMessage(
            id=msg_id,
            project_id=message.project_id,
            sender_id=message.sender.id,
            sender=message.sender,
            message=message.message,
            attachments=list(message.attachments),
            created_at=ts,
            updated_at=ts,
        )

    async def get_message(self, message_id: str) -> ChatMessage | None:
        """Get a message by id."""
        conn = self._require_conn()

        cursor = await conn.execute(
            f"SELECT {MESSAGE_COLUMNS} FROM chat_messages WHERE id = ?",
            (message_id,),
        )
        row = await cursor.fetchone()

        if not row:
            return None

        return _row_to_message(row)

    async def list_by_project(self, project_id: str) -> list[ChatMessage]:
        """List a project's messages in persisted order."""
        conn = self._require_conn()

        cursor = await conn.execute(
            f"""
            SELECT {MESSAGE_COLUMNS}
            FROM chat_messages
            WHERE project_id = ?
            ORDER BY seq ASC
            """,
            (project_id,),
        )
        rows = await cursor.fetchall()

        return [_row_to_message(row) for row in rows]

    async def list_pinned(self, project_id: str) -> list[ChatMessage]:
        """List a project's pinned messages, most recently pinned first."""
        conn = self._require_conn()

        cursor = await conn.execute(
            f"""
            SELECT {MESSAGE_COLUMNS}
            FROM chat_messages
            WHERE project_id = ? AND is_pinned = 1
            ORDER BY pinned_at DESC, seq DESC
            """,
            (project_id,),
        )
        rows = await cursor.fetchall()

        return [_row_to_message(row) for row in rows]

    async def set_pinned(
        self, message_id: str, pinned: bool, by: str | None
    ) -> ChatMessage:
        """Set or clear the pin of a message."""
        conn = self._require_conn()

        if pinned and not by:
            raise ValueError("Pinning requires the acting user id")

        ts = _now()
        cursor = await conn.execute(
            """
            UPDATE chat_messages
            SET is_pinned = ?, pinned_by = ?, pinned_at = ?, updated_at = ?
            WHERE id = ?
            """,
            (
                1 if pinned else 0,
                by if pinned else None,
                ts.isoformat() if pinned else None,
                ts.isoformat(),
                message_id,
            ),
        )
        await conn.commit()

        if cursor.rowcount == 0:
            raise NotFoundError("Message not found")

        updated = await self.get_message(message_id)
        if updated is None:
            raise NotFoundError("Message not found")
        return updated

    async def delete(self, message_id: str, by: str | None = None) -> None:
        """Hard-delete a message, leaving a tombstone. Repeated deletes are no-ops."""
        conn = self._require_conn()

        if await self.is_deleted(message_id):
            return

        cursor = await conn.execute(
            "SELECT project_id FROM chat_messages WHERE id = ?",
            (message_id,),
        )
        row = await cursor.fetchone()
        if not row:
            raise NotFoundError("Message not found")

        await conn.execute(
            """
            INSERT INTO deleted_messages (id, project_id, deleted_by, deleted_at)
            VALUES (?, ?, ?, ?)
            """,
            (message_id, row[0], by, _now().isoformat()),
        )
        await conn.execute("DELETE FROM chat_messages WHERE id = ?", (message_id,))
        await conn.commit()

    async def is_deleted(self, message_id: str) -> bool:
        """Check whether a message id was deleted."""
        conn = self._require_conn()

        cursor = await conn.execute(
            "SELECT 1 FROM deleted_messages WHERE id = ?",
            (message_id,),
        )
        return await cursor.fetchone() is not None

    # Identities
    async def save_identity(self, identity: Identity) -> None:
        """Save a user identity."""
        conn = self._require_conn()

        await conn.execute(
            """
            INSERT OR REPLACE INTO users
            (id, company_id, name, email, role, permissions, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, CURRENT_TIMESTAMP)
            """,
            (
                identity.id,
                identity.company_id,
                identity.name,
                identity.email,
                identity.role.value,
                json.dumps({c.value: v for c, v in identity.flags.items()}),
            ),
        )
        await conn.commit()

    async def get_identity(self, user_id: str) -> Identity | None:
        """Get a user's identity."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            SELECT id, company_id, name, email, role, permissions
            FROM users
            WHERE id = ?
            """,
            (user_id,),
        )
        row = await cursor.fetchone()

        if not row:
            return None

        return _row_to_identity(row)

    async def get_identities(self, user_ids: list[str]) -> list[Identity]:
        """Get several identities (unknown ids are skipped)."""
        conn = self._require_conn()

        if not user_ids:
            return []

        placeholders = ",".join("?" * len(user_ids))
        cursor = await conn.execute(
            f"""
            SELECT id, company_id, name, email, role, permissions
            FROM users
            WHERE id IN ({placeholders})
            """,
            user_ids,
        )
        rows = await cursor.fetchall()

        return [_row_to_identity(row) for row in rows]

    async def get_role_and_flags(self, user_id: str) -> Actor | None:
        """Get role and permission flags for a user."""
        identity = await self.get_identity(user_id)
        return identity.to_actor() if identity else None

    async def update_flags(self, user_id: str, flags: PermissionFlags) -> None:
        """Replace a user's permission flags."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            UPDATE users
            SET permissions = ?, updated_at = CURRENT_TIMESTAMP
            WHERE id = ?
            """,
            (json.dumps({c.value: v for c, v in flags.items()}), user_id),
        )
        await conn.commit()

        if cursor.rowcount == 0:
            raise NotFoundError("User not found")

    # Domain events
    async def save_domain_event(self, event: DomainEvent) -> None:
        """Save a domain event."""
        conn = self._require_conn()

        await conn.execute(
            """
            INSERT INTO domain_events (id, topic, project_id, payload, actor_id, timestamp)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                event.id or str(uuid.uuid4()),
                event.topic.value,
                event.project_id,
                json.dumps(event.payload),
                event.actor_id,
                event.timestamp.isoformat(),
            ),
        )
        await conn.commit()

    async def get_domain_events(
        self, project_id: str | None = None, limit: int = 100
    ) -> list[DomainEvent]:
        """Get domain events (newest first)."""
        conn = self._require_conn()

        if project_id:
            cursor = await conn.execute(
                """
                SELECT id, topic, project_id, payload, actor_id, timestamp
                FROM domain_events
                WHERE project_id = ?
                ORDER BY timestamp DESC, rowid DESC
                LIMIT ?
                """,
                (project_id, limit),
            )
        else:
            cursor = await conn.execute(
                """
                SELECT id, topic, project_id, payload, actor_id, timestamp
                FROM domain_events
                ORDER BY timestamp DESC, rowid DESC
                LIMIT ?
                """,
                (limit,),
            )
        rows = await cursor.fetchall()

        return [
            DomainEvent(
                id=row[0],
                topic=Topic(row[1]),
                project_id=row[2],
                payload=json.loads(row[3]),
                actor_id=row[4],
                timestamp=_parse_ts(row[5]),
            )
            for row in rows
        ]

    # TraceEvents
    async def save_trace_event(self, event: TraceEvent) -> None:
        """Save a trace event."""
        conn = self._require_conn()

        await conn.execute(
            """
            INSERT INTO trace_events (id, event_type, actor, data, timestamp)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                event.id or str(uuid.uuid4()),
                event.event_type,
                event.actor,
                json.dumps(event.data),
                event.timestamp.isoformat(),
            ),
        )
        await conn.commit()

    async def get_trace_events(
        self,
        after: datetime | None = None,
        event_types: list[str] | None = None,
        actor: str | None = None,
        limit: int = 100,
    ) -> list[TraceEvent]:
        """Get trace events with optional filters."""
        conn = self._require_conn()

        # Build query dynamically
        conditions = []
        params: list = []

        if after:
            if after.tzinfo is None:
                after = after.replace(tzinfo=timezone.utc)
            conditions.append("timestamp > ?")
            params.append(after.isoformat())
        if event_types:
            placeholders = ",".join("?" * len(event_types))
            conditions.append(f"event_type IN ({placeholders})")
            params.extend(event_types)
        if actor:
            conditions.append("actor = ?")
            params.append(actor)

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        query = f"""
            SELECT id, event_type, actor, data, timestamp
            FROM trace_events
            {where_clause}
            ORDER BY timestamp DESC, rowid DESC
            LIMIT ?
        """
        params.append(limit)

        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()

        return [
            TraceEvent(
                id=row[0],
                event_type=row[1],
                actor=row[2],
                data=json.loads(row[3]),
                timestamp=_parse_ts(row[4]),
            )
            for row in rows
        ]

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        conn = self._require_conn()

        tables = [
            "chat_messages",
            "deleted_messages",
            "domain_events",
            "trace_events",
            "users",
        ]

        for table in tables:
            await conn.execute(f"DELETE FROM {table}")

        await conn.commit()
