"""Event broadcaster: fan-out of confirmed events to room members."""

import asyncio
from enum import Enum
from typing import Any

from ..logging_config import get_logger
from .events import IConnection
from .registry import RoomRegistry

logger = get_logger(__name__)


def _event_name(event: str | Enum) -> str:
    return event.value if isinstance(event, Enum) else event


class Broadcaster:
    """Delivers events to every connection in a room, isolating failures per recipient."""

    def __init__(self, registry: RoomRegistry):
        self._registry = registry

    async def broadcast(
        self,
        project_id: str,
        event: str | Enum,
        payload: Any,
        exclude: IConnection | None = None,
    ) -> int:
        """
        Deliver an event to all members of a room.

        Args:
            project_id: Room to deliver to.
            event: Server event name.
            payload: JSON-serializable payload.
            exclude: Connection that must not receive the event (typing echo).

        Returns:
            Number of connections the event was handed to.
        """
        name = _event_name(event)
        recipients = [
            connection
            for connection in self._registry.members_of(project_id)
            if exclude is None or connection.connection_id != exclude.connection_id
        ]
        if not recipients:
            return 0

        results = await asyncio.gather(
            *[connection.send(name, payload) for connection in recipients],
            return_exceptions=True,
        )

        delivered = 0
        for connection, result in zip(recipients, results):
            if isinstance(result, Exception):
                logger.warning(
                    "Dropping dead connection after failed delivery: %s",
                    result,
                    extra={
                        "context": {
                            "connection_id": connection.connection_id,
                            "project_id": project_id,
                            "event": name,
                        }
                    },
                )
                self._registry.disconnect(connection)
            else:
                delivered += 1

        return delivered

    async def send_to(self, connection: IConnection, event: str | Enum, payload: Any) -> bool:
        """Deliver an event to a single connection. Returns False if delivery failed."""
        name = _event_name(event)
        try:
            await connection.send(name, payload)
        except Exception as e:
            logger.warning(
                "Failed to deliver %s to connection %s: %s",
                name,
                connection.connection_id,
                e,
            )
            self._registry.disconnect(connection)
            return False
        return True
