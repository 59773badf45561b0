"""Storage interface for the address directory."""
from __future__ import annotations

import pathlib
import sqlite3
from typing import Protocol
from typing import runtime_checkable

import aiosqlite

from syrja.directory.exceptions import AddressTakenError
from syrja.directory.exceptions import DirectoryStorageError


@runtime_checkable
class AddressStorage(Protocol):
    """Directory storage protocol for claimed addresses."""

    async def claim(self, address: str, invite_code: str) -> None:
        """Claim an address.

        Args:
            address: Unique address to claim.
            invite_code: Invite code the address resolves to.

        Raises:
            AddressTakenError: If the address has already been claimed.
            DirectoryStorageError: If the storage backend fails.
        """
        ...

    async def resolve(self, address: str) -> str | None:
        """Resolve an address to its invite code.

        Args:
            address: Address to look up.

        Returns:
            The invite code or `None` if the address has not been claimed.

        Raises:
            DirectoryStorageError: If the storage backend fails.
        """
        ...

    async def close(self) -> None:
        """Close the storage."""
        ...


class DictStorage:
    """Simple dictionary-based storage for addresses.

    Warning:
        Claimed addresses are lost when the process exits.
    """

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def claim(self, address: str, invite_code: str) -> None:
        """Claim an address.

        Raises:
            AddressTakenError: If the address has already been claimed.
        """
        if address in self._data:
            raise AddressTakenError(f'Address {address} is already taken.')
        self._data[address] = invite_code

    async def resolve(self, address: str) -> str | None:
        """Resolve an address to its invite code or `None`."""
        return self._data.get(address, None)

    async def close(self) -> None:
        """Clear all claimed addresses."""
        self._data.clear()


class SQLiteStorage:
    """SQLite storage for addresses.

    The database is opened lazily on first use and the `addresses` table is
    created if it does not exist.

    Args:
        database_path: Path to database file.
    """

    def __init__(self, database_path: str | pathlib.Path = ':memory:') -> None:
        if database_path == ':memory:':
            self.database_path = database_path
        else:
            path = pathlib.Path(database_path).expanduser().resolve()
            self.database_path = str(path)

        self._db: aiosqlite.Connection | None = None

    async def db(self) -> aiosqlite.Connection:
        """Get the database connection object."""
        if self._db is None:
            self._db = await aiosqlite.connect(self.database_path)
            await self._db.execute(
                'CREATE TABLE IF NOT EXISTS addresses'
                '(address TEXT PRIMARY KEY, inviteCode TEXT NOT NULL)',
            )
            await self._db.commit()
        return self._db

    async def claim(self, address: str, invite_code: str) -> None:
        """Claim an address.

        Raises:
            AddressTakenError: If the address has already been claimed.
            DirectoryStorageError: If the database query fails.
        """
        try:
            db = await self.db()
            await db.execute(
                'INSERT INTO addresses (address, inviteCode) VALUES (?, ?)',
                (address, invite_code),
            )
            await db.commit()
        except sqlite3.IntegrityError as e:
            raise AddressTakenError(
                f'Address {address} is already taken.',
            ) from e
        except sqlite3.Error as e:
            raise DirectoryStorageError(
                f'Failed to claim address {address}: {e}',
            ) from e

    async def resolve(self, address: str) -> str | None:
        """Resolve an address to its invite code or `None`.

        Raises:
            DirectoryStorageError: If the database query fails.
        """
        try:
            db = await self.db()
            async with db.execute(
                'SELECT inviteCode FROM addresses WHERE address=?',
                (address,),
            ) as cursor:
                result = await cursor.fetchone()
        except sqlite3.Error as e:
            raise DirectoryStorageError(
                f'Failed to resolve address {address}: {e}',
            ) from e

        if result is None:
            return None
        else:
            return result[0]

    async def close(self) -> None:
        """Close the storage."""
        if self._db is not None:
            await self._db.close()
            self._db = None
