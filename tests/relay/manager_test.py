from __future__ import annotations

import uuid

import pytest

from syrja.relay.exceptions import IdentifierAlreadyAttachedError
from syrja.relay.manager import Connection
from syrja.relay.manager import ConnectionManager
from syrja.relay.manager import UNKNOWN_ORIGIN
from testing.utils import mock_connection
from testing.utils import mock_websocket


def test_connection_from_websocket() -> None:
    websocket = mock_websocket('10.0.0.1')
    connection = Connection.from_websocket(websocket)

    assert connection.uuid == websocket.id
    assert connection.origin == '10.0.0.1'
    assert connection.websocket is websocket
    assert connection.identifier is None


def test_connection_from_websocket_without_address() -> None:
    websocket = mock_websocket()
    websocket.remote_address = None  # type: ignore[misc]
    connection = Connection.from_websocket(websocket)
    assert connection.origin == UNKNOWN_ORIGIN


def test_connection_equality() -> None:
    assert mock_connection() != mock_connection()

    connection1 = mock_connection()
    connection2 = Connection(
        uuid=connection1.uuid,
        origin='other',
        websocket=mock_websocket(),
    )
    assert connection1 == connection2
    assert hash(connection1) == hash(connection2)

    assert connection1 != object()


def test_connection_attach() -> None:
    connection = mock_connection()

    connection.attach('alice')
    connection.attach('alice')
    assert connection.identifier == 'alice'

    with pytest.raises(IdentifierAlreadyAttachedError):
        connection.attach('bob')
    assert connection.identifier == 'alice'


def test_connection_repr() -> None:
    connection = mock_connection()
    assert isinstance(repr(connection), str)

    connection.attach('a' * 64)
    assert 'a' * 12 in repr(connection)
    assert 'a' * 13 not in repr(connection)


def test_connection_manager() -> None:
    manager = ConnectionManager()

    # Test operations on empty manager
    assert len(manager.get_connections()) == 0
    assert manager.get_connection(uuid.uuid4()) is None

    # Basic add / get connection
    connection = mock_connection()
    manager.add_connection(connection)
    assert len(manager) == 1
    assert manager.get_connection(connection.uuid) is connection

    # Remove a connection + remove an already removed connection
    manager.remove_connection(connection)
    assert len(manager) == 0
    manager.remove_connection(connection)

    # Add many connections
    count = 5
    for _ in range(count):
        manager.add_connection(mock_connection())
    assert len(manager.get_connections()) == count
