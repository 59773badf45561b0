"""Fixtures and utilities for testing."""
from __future__ import annotations

import asyncio
import socket
import uuid
from typing import Callable
from unittest import mock

from websockets.asyncio.server import ServerConnection

from syrja.relay.manager import Connection


def open_port() -> int:
    """Return open port.

    Source: https://stackoverflow.com/questions/2838244
    """
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    s.bind(('', 0))
    s.listen(1)
    port = s.getsockname()[1]
    s.close()
    return port


def mock_websocket(host: str = '127.0.0.1') -> ServerConnection:
    """Create a mock server websocket with async `send()` and `close()`."""
    websocket = mock.MagicMock()
    websocket.id = uuid.uuid4()
    websocket.remote_address = (host, 50000)
    websocket.send = mock.AsyncMock()
    websocket.close = mock.AsyncMock()
    return websocket


def mock_connection(host: str = '127.0.0.1') -> Connection:
    """Create a connection backed by a mock websocket."""
    return Connection.from_websocket(mock_websocket(host))


class FakeClock:
    """Manually advanced clock for driving time-based logic."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


async def wait_for(
    predicate: Callable[[], bool],
    timeout: float = 1.0,
    interval: float = 0.005,
) -> None:
    """Wait until `predicate()` is true.

    Raises:
        TimeoutError: If the predicate is still false after `timeout`
            seconds.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise TimeoutError('Timeout waiting for condition.')
        await asyncio.sleep(interval)
