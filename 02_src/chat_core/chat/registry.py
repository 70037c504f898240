"""Room registry: which live connections are joined to which project rooms."""

from dataclasses import dataclass

from ..logging_config import get_logger
from ..models import Role
from .events import IConnection

logger = get_logger(__name__)


@dataclass(frozen=True)
class Membership:
    """One connection joined to one project room."""

    connection: IConnection
    project_id: str
    user_id: str
    role: Role


class RoomRegistry:
    """
    Tracks room memberships keyed by connection identity.

    A connection joins a room at most once; several connections of the same
    user (tabs, devices) are separate memberships. All mutation happens on the
    event loop thread, so plain dicts are sufficient.
    """

    def __init__(self):
        self._rooms: dict[str, dict[str, Membership]] = {}
        self._connection_rooms: dict[str, set[str]] = {}

    def join(
        self, connection: IConnection, project_id: str, user_id: str, role: Role
    ) -> bool:
        """Add a membership. Returns False if the connection was already in the room."""
        room = self._rooms.setdefault(project_id, {})
        existed = connection.connection_id in room

        room[connection.connection_id] = Membership(
            connection=connection,
            project_id=project_id,
            user_id=user_id,
            role=role,
        )
        self._connection_rooms.setdefault(connection.connection_id, set()).add(project_id)

        if not existed:
            logger.debug(
                "Connection joined room",
                extra={"context": {"connection_id": connection.connection_id, "project_id": project_id}},
            )
        return not existed

    def leave(self, connection: IConnection, project_id: str) -> bool:
        """Remove a membership. Returns False if there was none."""
        room = self._rooms.get(project_id)
        if not room or connection.connection_id not in room:
            return False

        del room[connection.connection_id]
        if not room:
            del self._rooms[project_id]

        projects = self._connection_rooms.get(connection.connection_id)
        if projects is not None:
            projects.discard(project_id)
            if not projects:
                del self._connection_rooms[connection.connection_id]
        return True

    def disconnect(self, connection: IConnection) -> list[str]:
        """Purge every membership of a connection. Returns the rooms it left."""
        projects = sorted(self._connection_rooms.get(connection.connection_id, ()))
        for project_id in projects:
            self.leave(connection, project_id)
        return projects

    def members_of(self, project_id: str) -> set[IConnection]:
        """Connections currently joined to a room."""
        room = self._rooms.get(project_id, {})
        return {membership.connection for membership in room.values()}

    def memberships_of(self, project_id: str) -> list[Membership]:
        return list(self._rooms.get(project_id, {}).values())

    def get_membership(self, connection: IConnection, project_id: str) -> Membership | None:
        return self._rooms.get(project_id, {}).get(connection.connection_id)

    def is_member(self, connection: IConnection, project_id: str) -> bool:
        return connection.connection_id in self._rooms.get(project_id, {})

    def rooms_of(self, connection: IConnection) -> set[str]:
        return set(self._connection_rooms.get(connection.connection_id, ()))

    @property
    def room_count(self) -> int:
        return len(self._rooms)

    @property
    def connection_count(self) -> int:
        return len(self._connection_rooms)
