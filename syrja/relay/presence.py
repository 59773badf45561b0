"""In-memory registry of identifiers claimed by live connections."""
from __future__ import annotations

import logging
from typing import Any

from syrja.relay.manager import Connection

logger = logging.getLogger(__name__)


def normalize_identifier(identifier: str) -> str:
    """Remove all whitespace from an identifier.

    Identifiers are often long public keys copied between applications,
    so every whitespace variant of the same key maps to the same entry.

    Raises:
        TypeError: If the identifier is not a string.
    """
    if not isinstance(identifier, str):
        raise TypeError(
            f'Identifier must be a str but got {type(identifier).__name__}.',
        )
    return ''.join(identifier.split())


class PresenceRegistry:
    """Maps normalized identifiers to the connection currently holding them.

    Registration is last-writer-wins: registering an identifier that is
    already held replaces the previous entry and the displaced connection
    is not notified. No proof of ownership is checked.
    """

    def __init__(self) -> None:
        self._connections: dict[str, Connection] = {}

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, identifier: Any) -> bool:
        return self.resolve(identifier) is not None

    def identifiers(self) -> list[str]:
        """Get a list of all registered identifiers."""
        return list(self._connections)

    def register(self, identifier: str | None, connection: Connection) -> bool:
        """Register an identifier to a connection.

        Args:
            identifier: Identifier to publish. Whitespace is removed.
            connection: Connection which will receive events addressed to
                the identifier.

        Returns:
            `False` if the normalized identifier is empty and nothing was
            registered, otherwise `True`.

        Raises:
            IdentifierAlreadyAttachedError: If the connection already holds
                a different identifier.
        """
        if not identifier:
            return False
        key = normalize_identifier(identifier)
        if not key:
            return False

        connection.attach(key)
        previous = self._connections.get(key, None)
        self._connections[key] = connection
        if previous is not None and previous != connection:
            logger.info(
                f'Identifier {key[:12]}... moved from connection '
                f'{previous.uuid} to {connection.uuid}',
            )
        return True

    def resolve(self, identifier: Any) -> Connection | None:
        """Get the connection holding an identifier.

        Returns:
            The connection or `None` if the identifier is not registered
            or is not a string.
        """
        if not isinstance(identifier, str):
            return None
        return self._connections.get(normalize_identifier(identifier), None)

    def unregister(self, connection: Connection) -> bool:
        """Remove the entry registered by a connection.

        The entry is only removed if it still points at `connection`.
        Entries taken over by a later registration are left alone.

        Returns:
            If an entry was removed.
        """
        key = connection.identifier
        if key is None or self._connections.get(key, None) != connection:
            return False
        del self._connections[key]
        return True
