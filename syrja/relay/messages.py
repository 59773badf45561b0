"""Event types and wire encoding for relay client and server communication.

Every websocket text frame exchanged with the relay server is a JSON
object with two keys: `event`, the name of the event, and `data`, the
event's argument. For example, a client asking to be connected to the
peer registered as `alice` sends:

```json
{"event": "request-connection", "data": {"to": "alice", "from": "bob"}}
```
"""
from __future__ import annotations

import dataclasses
import enum
import json
from typing import Any


class ClientEvent(enum.Enum):
    """Events sent by clients to the relay server."""

    register = 'register'
    """Publish an identifier for the sending connection."""
    request_connection = 'request-connection'
    """Ask a peer to open a connection."""
    accept_connection = 'accept-connection'
    """Accept a peer's connection request."""
    call_request = 'call-request'
    """Ring a peer with a call type tag."""
    call_accepted = 'call-accepted'
    """Accept an incoming call."""
    call_rejected = 'call-rejected'
    """Reject an incoming call."""
    call_ended = 'call-ended'
    """Hang up an ongoing call."""
    join = 'join'
    """Join a broadcast room."""
    signal = 'signal'
    """Broadcast an opaque negotiation payload to a room."""
    auth = 'auth'
    """Broadcast an opaque authentication payload to a room."""


class ServerEvent(enum.Enum):
    """Events sent by the relay server to clients."""

    incoming_request = 'incoming-request'
    connection_accepted = 'connection-accepted'
    incoming_call = 'incoming-call'
    call_accepted = 'call-accepted'
    call_rejected = 'call-rejected'
    call_ended = 'call-ended'
    signal = 'signal'
    auth = 'auth'


@dataclasses.dataclass(frozen=True)
class Route:
    """How a peer-addressed client event is relayed.

    Attributes:
        outbound: Event delivered to the addressed peer.
        rate_limited: If the sender's origin is charged against the
            rate limiter before relaying.
    """

    outbound: ServerEvent
    rate_limited: bool = False


RELAY_ROUTES: dict[ClientEvent, Route] = {
    ClientEvent.request_connection: Route(
        ServerEvent.incoming_request,
        rate_limited=True,
    ),
    ClientEvent.accept_connection: Route(ServerEvent.connection_accepted),
    ClientEvent.call_request: Route(ServerEvent.incoming_call),
    ClientEvent.call_accepted: Route(ServerEvent.call_accepted),
    ClientEvent.call_rejected: Route(ServerEvent.call_rejected),
    ClientEvent.call_ended: Route(ServerEvent.call_ended),
}
"""Client events forwarded to a single peer resolved by identifier."""

ROOM_ROUTES: dict[ClientEvent, ServerEvent] = {
    ClientEvent.signal: ServerEvent.signal,
    ClientEvent.auth: ServerEvent.auth,
}
"""Client events broadcast to the other members of a room."""


@dataclasses.dataclass
class RelayRequest:
    """Peer-addressed event data.

    Attributes:
        to: Identifier of the peer to deliver to.
        source: Identifier the sender claims (the `from` field on the wire).
        extra: Any remaining fields, forwarded unchanged.
    """

    to: str
    source: str
    extra: dict[str, Any] = dataclasses.field(default_factory=dict)


@dataclasses.dataclass
class RoomMessage:
    """Room broadcast event data.

    Attributes:
        room: Name of the room to broadcast to.
        payload: Opaque payload. Never inspected by the server.
    """

    room: str
    payload: Any


class RelayEventError(Exception):
    """Base exception type for relay events."""

    pass


class EventDecodeError(RelayEventError):
    """Exception raised when an event cannot be decoded."""

    pass


class EventEncodeError(RelayEventError):
    """Exception raised when an event cannot be encoded."""

    pass


def decode_client_event(message: str | bytes) -> tuple[ClientEvent, Any]:
    """Decode a websocket frame into a client event and its data.

    Args:
        message: Frame received from the client.

    Returns:
        Tuple of the event and its (unvalidated) data. Data is `None` if
        the frame omits it.

    Raises:
        EventDecodeError: If the frame is binary, is not a JSON object, or
            names an unknown event.
    """
    if isinstance(message, bytes):
        raise EventDecodeError('Got message as bytes but expected str.')

    try:
        frame = json.loads(message)
    except (json.JSONDecodeError, RecursionError) as e:
        raise EventDecodeError('Failed to load string as JSON.') from e

    if not isinstance(frame, dict):
        raise EventDecodeError(
            f'Expected a JSON object but got {type(frame).__name__}.',
        )

    try:
        name = frame['event']
    except KeyError as e:
        raise EventDecodeError('Message does not contain an event key.') from e

    try:
        event = ClientEvent(name)
    except ValueError as e:
        raise EventDecodeError(f'Unknown event type: {name!r}.') from e

    return event, frame.get('data')


def encode_server_event(event: ServerEvent, data: Any) -> str:
    """Encode a server event as a JSON string.

    Args:
        event: Event to send.
        data: JSON serializable event data.

    Raises:
        EventEncodeError: If `event` is not a server event or the data
            cannot be JSON encoded.
    """
    if not isinstance(event, ServerEvent):
        raise EventEncodeError(
            f'Event is not an instance of {ServerEvent.__name__}. '
            f'Got {type(event).__name__}.',
        )

    try:
        return json.dumps({'event': event.value, 'data': data})
    except (TypeError, ValueError) as e:
        raise EventEncodeError(f'Error encoding {event.value} event.') from e


def parse_identifier(data: Any) -> str:
    """Validate the data of a `register` event.

    Raises:
        EventDecodeError: If the identifier is not a string.
    """
    if not isinstance(data, str):
        raise EventDecodeError(
            f'Identifier must be a string but got {type(data).__name__}.',
        )
    return data


def parse_room(data: Any) -> str:
    """Validate a room name.

    Raises:
        EventDecodeError: If the room name is not a non-empty string.
    """
    if not isinstance(data, str) or not data:
        raise EventDecodeError('Room name must be a non-empty string.')
    return data


def parse_relay_request(data: Any) -> RelayRequest:
    """Validate the data of a peer-addressed event.

    Args:
        data: Event data which should be an object with string `to` and
            `from` fields plus any extra fields.

    Raises:
        EventDecodeError: If the data is not an object or is missing the
            `to` or `from` strings.
    """
    if not isinstance(data, dict):
        raise EventDecodeError('Relay event data must be a JSON object.')

    extra = dict(data)
    to = extra.pop('to', None)
    source = extra.pop('from', None)
    if not isinstance(to, str) or not isinstance(source, str):
        raise EventDecodeError(
            'Relay event data requires string "to" and "from" fields.',
        )
    return RelayRequest(to=to, source=source, extra=extra)


def parse_room_message(data: Any) -> RoomMessage:
    """Validate the data of a room broadcast event.

    Raises:
        EventDecodeError: If the data is not an object with a valid room
            name.
    """
    if not isinstance(data, dict):
        raise EventDecodeError('Room event data must be a JSON object.')
    return RoomMessage(
        room=parse_room(data.get('room')),
        payload=data.get('payload'),
    )
