"""Relay server implementation for exchanging peer signaling events.

The relay server (or signaling server) is a lightweight server accessible
by all peers that lets them find each other by a published identifier and
exchange the handful of messages needed to set up a direct peer link.
After that the peers no longer need the relay server.

Every event is handled best-effort and exactly once. Events addressed to
an identifier that is not registered, events rejected by the rate limiter,
and malformed events are dropped without any reply to the sender. Drops
are logged and counted in
[`RelayServer.drops`][syrja.relay.server.RelayServer.drops].
"""
from __future__ import annotations

import collections
import enum
import logging
import sys
from typing import Any
from typing import Iterable

import websockets.exceptions
from websockets.asyncio.server import broadcast as websockets_broadcast
from websockets.asyncio.server import ServerConnection

from syrja.relay.exceptions import BadRequestError
from syrja.relay.manager import Connection
from syrja.relay.manager import ConnectionManager
from syrja.relay.messages import ClientEvent
from syrja.relay.messages import decode_client_event
from syrja.relay.messages import encode_server_event
from syrja.relay.messages import EventDecodeError
from syrja.relay.messages import EventEncodeError
from syrja.relay.messages import parse_identifier
from syrja.relay.messages import parse_relay_request
from syrja.relay.messages import parse_room
from syrja.relay.messages import parse_room_message
from syrja.relay.messages import RELAY_ROUTES
from syrja.relay.messages import ROOM_ROUTES
from syrja.relay.messages import ServerEvent
from syrja.relay.presence import normalize_identifier
from syrja.relay.presence import PresenceRegistry
from syrja.relay.ratelimit import RateLimiter
from syrja.relay.rooms import RoomMembership

logger = logging.getLogger(__name__)


class DropReason(enum.Enum):
    """Why the relay server dropped an event."""

    malformed = 'malformed'
    """The event could not be decoded or its data was invalid."""
    rate_limited = 'rate_limited'
    """The sender's origin exhausted its rate limit window."""
    unknown_peer = 'unknown_peer'
    """The addressed identifier is not registered."""


def _short(identifier: str) -> str:
    return f'{identifier[:12]}...'


class RelayServer:
    """Signaling relay server.

    The relay server owns the presence registry, room membership, and rate
    limiter tables. They live only in memory and are lost on restart, at
    which point clients are expected to register again.

    The relay server is built on websockets and designed to be
    served using [`serve()`][syrja.relay.run.serve].

    Note:
        Events are processed without awaiting, so each event is atomic
        with respect to other events on the same event loop. Outbound
        events are queued on the peers' sockets and never wait for a peer
        to read them.

    Args:
        registry: Presence registry. A new registry is created if `None`.
        rooms: Room membership table. A new table is created if `None`.
        rate_limiter: Rate limiter for registration and connection
            requests. A default limiter is created if `None`.
        max_message_bytes: Optional maximum size of client messages in bytes.
            Clients that send oversized messages will have their connections
            closed. Note that message size is computed using
            [`sys.getsizeof()`][sys.getsizeof] so will also include the
            PyObject overhead.
    """

    def __init__(
        self,
        registry: PresenceRegistry | None = None,
        rooms: RoomMembership | None = None,
        rate_limiter: RateLimiter | None = None,
        max_message_bytes: int | None = None,
    ) -> None:
        self._registry = (
            registry if registry is not None else PresenceRegistry()
        )
        self._rooms = rooms if rooms is not None else RoomMembership()
        self._rate_limiter = (
            rate_limiter if rate_limiter is not None else RateLimiter()
        )
        self._connection_manager = ConnectionManager()
        self._max_message_bytes = max_message_bytes
        self._drops: collections.Counter[DropReason] = collections.Counter()

    @property
    def registry(self) -> PresenceRegistry:
        """Presence registry of identifiers."""
        return self._registry

    @property
    def rooms(self) -> RoomMembership:
        """Room membership table."""
        return self._rooms

    @property
    def rate_limiter(self) -> RateLimiter:
        """Per-origin rate limiter."""
        return self._rate_limiter

    @property
    def connection_manager(self) -> ConnectionManager:
        """Manager of live connections."""
        return self._connection_manager

    @property
    def drops(self) -> collections.Counter[DropReason]:
        """Number of dropped events by reason."""
        return self._drops

    def _drop(self, reason: DropReason, message: str) -> None:
        self._drops[reason] += 1
        logger.warning(message)

    def _admit(self, connection: Connection, event: ClientEvent) -> bool:
        if self.rate_limiter.check(connection.origin):
            return True
        self._drop(
            DropReason.rate_limited,
            f'Rate limit exceeded for {event.value} by {connection.origin}',
        )
        return False

    def send(
        self,
        connections: Iterable[Connection],
        event: ServerEvent,
        data: Any,
    ) -> None:
        """Send an event on the sockets of connections.

        The event is written to each socket without waiting for the peer to
        read it, so a peer that stops reading cannot stall the sender.
        Closed connections are skipped. Errors are logged and not raised
        because delivery is best-effort.

        Note:
            Events are JSON string encoded using
            [`encode_server_event()`][syrja.relay.messages.encode_server_event].

        Args:
            connections: Connections to send the event to.
            event: Event to send.
            data: JSON serializable event data.
        """
        try:
            message_str = encode_server_event(event, data)
        except EventEncodeError as e:
            logger.error(f'Failed to encode message: {e}')
            return

        websockets_broadcast(
            [connection.websocket for connection in connections],
            message_str,
        )

    def connect(self, websocket: ServerConnection) -> Connection:
        """Create the state of a newly opened websocket connection."""
        connection = Connection.from_websocket(websocket)
        self.connection_manager.add_connection(connection)
        logger.info(
            f'Client connected: {connection.uuid} ({connection.origin})',
        )
        return connection

    def disconnect(self, connection: Connection, expected: bool) -> None:
        """Tear down the state of a closed connection.

        Removes the connection's registry entry, if it still owns one, and
        all of its room memberships. Calling this more than once for the
        same connection is harmless.

        Args:
            connection: Connection that closed.
            expected: If the connection was closed intentionally or due to an
                error.
        """
        reason = 'ok' if expected else 'unexpected'
        logger.info(
            f'Client disconnected: {connection.uuid} for {reason} reason',
        )
        if connection.identifier is not None and self.registry.unregister(
            connection,
        ):
            logger.info(f'Unregistered: {_short(connection.identifier)}')
        self.rooms.leave_all(connection)
        self.connection_manager.remove_connection(connection)

    def register(self, connection: Connection, identifier: Any) -> None:
        """Register an identifier for a connection.

        Registration is rate limited. A later registration of the same
        identifier by any connection replaces this one.

        Args:
            connection: Connection registering.
            identifier: Identifier to publish.

        Raises:
            BadRequestError: If the identifier is not a string or the
                connection already registered a different identifier.
        """
        if not self._admit(connection, ClientEvent.register):
            return
        try:
            identifier = parse_identifier(identifier)
        except EventDecodeError as e:
            raise BadRequestError(str(e)) from e
        if self.registry.register(identifier, connection):
            assert connection.identifier is not None
            logger.info(
                f'Registered: {_short(connection.identifier)} -> '
                f'{connection.uuid}',
            )

    def forward(
        self,
        source: Connection,
        event: ClientEvent,
        data: Any,
    ) -> bool:
        """Forward a peer-addressed event to the connection holding `to`.

        The peer receives the outbound event of the route with the
        normalized `from` identifier and every extra field of the inbound
        data unchanged.

        Args:
            source: Connection sending the event.
            event: One of the events in
                [`RELAY_ROUTES`][syrja.relay.messages.RELAY_ROUTES].
            data: Inbound event data.

        Returns:
            If the event was delivered.

        Raises:
            BadRequestError: If the data does not contain `to` and `from`
                strings.
        """
        route = RELAY_ROUTES[event]
        if route.rate_limited and not self._admit(source, event):
            return False

        try:
            request = parse_relay_request(data)
        except EventDecodeError as e:
            raise BadRequestError(str(e)) from e

        to = normalize_identifier(request.to)
        source_identifier = normalize_identifier(request.source)
        target = self.registry.resolve(to)
        if target is None:
            self._drop(
                DropReason.unknown_peer,
                f'Could not deliver {event.value} to {_short(to)} '
                '(not registered/online)',
            )
            return False

        logger.info(
            f'Relaying {event.value}: {_short(source_identifier)} -> '
            f'{_short(to)}',
        )
        self.send(
            [target],
            route.outbound,
            {'from': source_identifier, **request.extra},
        )
        return True

    def join(self, connection: Connection, room: Any) -> None:
        """Add a connection to a room.

        Raises:
            BadRequestError: If the room name is not a non-empty string.
        """
        try:
            room = parse_room(room)
        except EventDecodeError as e:
            raise BadRequestError(str(e)) from e
        if self.rooms.join(room, connection):
            logger.info(f'Client {connection.uuid} joined {room}')

    def broadcast(
        self,
        source: Connection,
        event: ClientEvent,
        data: Any,
    ) -> int:
        """Broadcast an opaque payload to the other members of a room.

        Args:
            source: Connection sending the payload. Never receives it.
            event: One of the events in
                [`ROOM_ROUTES`][syrja.relay.messages.ROOM_ROUTES].
            data: Inbound event data with `room` and `payload` fields.

        Returns:
            Number of connections the payload was sent to.

        Raises:
            BadRequestError: If the data does not contain a valid room name.
        """
        try:
            message = parse_room_message(data)
        except EventDecodeError as e:
            raise BadRequestError(str(e)) from e

        targets = self.rooms.members(message.room, exclude=source)
        self.send(targets, ROOM_ROUTES[event], message.payload)
        return len(targets)

    def _process_event(
        self,
        connection: Connection,
        event: ClientEvent,
        data: Any,
    ) -> None:
        # Dispatches the event to the correct method depending on the type
        if event is ClientEvent.register:
            self.register(connection, data)
        elif event is ClientEvent.join:
            self.join(connection, data)
        elif event in RELAY_ROUTES:
            self.forward(connection, event, data)
        elif event in ROOM_ROUTES:
            self.broadcast(connection, event, data)
        else:
            raise AssertionError('Unreachable.')

    async def handler(self, websocket: ServerConnection) -> None:
        """Websocket server connection handler.

        Events are processed one at a time in the order received. The
        handler only closes the connection if the client sends a message
        larger than the allowed size (code 4003). Every other problem is
        dropped silently and logged.

        Args:
            websocket: Newly opened websocket connection.
        """
        connection = self.connect(websocket)
        expected = False
        try:
            while True:
                try:
                    message = await websocket.recv()
                except websockets.exceptions.ConnectionClosedOK:
                    expected = True
                    break
                except websockets.exceptions.ConnectionClosedError:
                    break

                if (
                    self._max_message_bytes is not None
                    and sys.getsizeof(message) > self._max_message_bytes
                ):
                    logger.warning(
                        f'Client at {connection.origin} sent message with '
                        f'size {sys.getsizeof(message)} bytes which exceeds '
                        'the max configured size of '
                        f'{self._max_message_bytes} bytes. Connection '
                        'closed with error code 4003',
                    )
                    await websocket.close(
                        4003,
                        reason='Message length exceeds limit.',
                    )
                    break

                try:
                    event, data = decode_client_event(message)
                except EventDecodeError as e:
                    self._drop(
                        DropReason.malformed,
                        f'Dropped message from {connection.origin}: {e}',
                    )
                    continue

                try:
                    self._process_event(connection, event, data)
                except BadRequestError as e:
                    self._drop(
                        DropReason.malformed,
                        f'Dropped {event.value} from {connection.origin}. '
                        f'{e.__class__.__name__}: {e}',
                    )
        finally:
            self.disconnect(connection, expected=expected)
