"""Helper classes for managing connections to a relay server."""
from __future__ import annotations

import dataclasses
import datetime
import uuid

from websockets.asyncio.server import ServerConnection

from syrja.relay.exceptions import IdentifierAlreadyAttachedError

UNKNOWN_ORIGIN = 'unknown'


def _utc_current_time() -> datetime.datetime:
    # dataclasses.field's default_factory requires a zero argument callable
    return datetime.datetime.now(tz=datetime.timezone.utc)


@dataclasses.dataclass(eq=False)
class Connection:
    """Representation of one live websocket session.

    Attributes:
        uuid: Unique id of the connection.
        origin: Network origin address of the connection. Used as the
            rate limiting key.
        websocket: WebSocket connection to the client.
        identifier: Normalized identifier registered by this connection.
            Attached at most once via
            [`attach()`][syrja.relay.manager.Connection.attach].
        created: Time the connection was created at.
    """

    uuid: uuid.UUID
    origin: str
    websocket: ServerConnection
    identifier: str | None = None
    created: datetime.datetime = dataclasses.field(
        default_factory=_utc_current_time,
    )

    @classmethod
    def from_websocket(cls, websocket: ServerConnection) -> Connection:
        """Create a connection from a newly opened websocket."""
        remote_address = websocket.remote_address
        origin = (
            str(remote_address[0])
            if remote_address is not None
            else UNKNOWN_ORIGIN
        )
        return cls(uuid=websocket.id, origin=origin, websocket=websocket)

    def attach(self, identifier: str) -> None:
        """Attach a normalized identifier to this connection.

        Attaching the identifier the connection already holds is a no-op.

        Raises:
            IdentifierAlreadyAttachedError: If a different identifier is
                already attached.
        """
        if self.identifier is not None and self.identifier != identifier:
            raise IdentifierAlreadyAttachedError(
                f'Connection {self.uuid} is already registered as '
                f'{self.identifier[:12]}...',
            )
        self.identifier = identifier

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Connection):
            return self.uuid == other.uuid
        else:
            return False

    def __hash__(self) -> int:
        return hash(self.uuid)

    def __repr__(self) -> str:
        created = self.created.strftime('%Y-%m-%d %H:%M:%S %Z')
        identifier = (
            None if self.identifier is None else f'{self.identifier[:12]}...'
        )
        return (
            f'{self.__class__.__name__}(uuid={self.uuid}, '
            f'identifier={identifier}, origin={self.origin}, '
            f'created={created})'
        )


class ConnectionManager:
    """Tracks the live connections of a relay server.

    Warning:
        This class is intended for internal use by the
        [`RelayServer`][syrja.relay.server.RelayServer].
    """

    def __init__(self) -> None:
        self._connections: dict[uuid.UUID, Connection] = {}

    def __len__(self) -> int:
        return len(self._connections)

    def add_connection(self, connection: Connection) -> None:
        """Add a newly opened connection."""
        self._connections[connection.uuid] = connection

    def get_connections(self) -> list[Connection]:
        """Get a list of all connections."""
        return list(self._connections.values())

    def get_connection(self, uuid: uuid.UUID) -> Connection | None:
        """Get a connection by its UUID."""
        return self._connections.get(uuid, None)

    def remove_connection(self, connection: Connection) -> None:
        """Remove a connection."""
        self._connections.pop(connection.uuid, None)
