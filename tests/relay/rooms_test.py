from __future__ import annotations

from syrja.relay.rooms import RoomMembership
from testing.utils import mock_connection


def test_join_and_members() -> None:
    rooms = RoomMembership()
    x = mock_connection()
    y = mock_connection()

    assert rooms.join('r', x)
    assert rooms.join('r', y)

    assert set(rooms.members('r')) == {x, y}
    assert rooms.members('r', exclude=x) == [y]
    assert rooms.members('other') == []
    assert len(rooms) == 1


def test_join_is_idempotent() -> None:
    rooms = RoomMembership()
    x = mock_connection()

    assert rooms.join('r', x)
    assert not rooms.join('r', x)
    assert rooms.members('r') == [x]


def test_connection_in_many_rooms() -> None:
    rooms = RoomMembership()
    x = mock_connection()

    rooms.join('a', x)
    rooms.join('b', x)

    assert rooms.rooms_of(x) == {'a', 'b'}
    assert rooms.members('a') == [x]
    assert rooms.members('b') == [x]


def test_leave_all() -> None:
    rooms = RoomMembership()
    x = mock_connection()
    y = mock_connection()

    rooms.join('a', x)
    rooms.join('b', x)
    rooms.join('b', y)

    assert rooms.leave_all(x) == ['a', 'b']
    assert rooms.rooms_of(x) == set()
    assert rooms.members('a') == []
    assert rooms.members('b') == [y]
    # Empty rooms are removed
    assert len(rooms) == 1

    assert rooms.leave_all(x) == []
