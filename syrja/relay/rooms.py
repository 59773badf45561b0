"""Room membership for broadcasting opaque payloads."""
from __future__ import annotations

from syrja.relay.manager import Connection


class RoomMembership:
    """Maps room names to the connections that joined them.

    Membership is many-to-many and carries no state besides presence.
    There is no leave operation for clients; memberships are dropped when
    the connection is torn down.
    """

    def __init__(self) -> None:
        self._members: dict[str, set[Connection]] = {}
        self._rooms: dict[Connection, set[str]] = {}

    def __len__(self) -> int:
        return len(self._members)

    def join(self, room: str, connection: Connection) -> bool:
        """Add a connection to a room.

        Returns:
            `True` if the connection was added, `False` if it was already
            a member.
        """
        members = self._members.setdefault(room, set())
        if connection in members:
            return False
        members.add(connection)
        self._rooms.setdefault(connection, set()).add(room)
        return True

    def members(
        self,
        room: str,
        exclude: Connection | None = None,
    ) -> list[Connection]:
        """Get the current members of a room.

        Args:
            room: Room name.
            exclude: Optional connection to leave out, typically the
                sender of a broadcast.

        Returns:
            Snapshot list of member connections.
        """
        return [
            connection
            for connection in self._members.get(room, ())
            if connection != exclude
        ]

    def rooms_of(self, connection: Connection) -> set[str]:
        """Get the names of the rooms a connection is in."""
        return set(self._rooms.get(connection, ()))

    def leave_all(self, connection: Connection) -> list[str]:
        """Remove a connection from every room it joined.

        Rooms left with no members are deleted.

        Returns:
            Names of the rooms the connection was removed from.
        """
        rooms = self._rooms.pop(connection, set())
        for room in rooms:
            members = self._members.get(room, None)
            if members is None:  # pragma: no cover
                continue
            members.discard(connection)
            if not members:
                del self._members[room]
        return sorted(rooms)
