"""Address directory exceptions."""
from __future__ import annotations


class DirectoryError(Exception):
    """Base exception type for address directory errors."""

    pass


class AddressTakenError(DirectoryError):
    """Exception raised when claiming an address that is already claimed."""

    pass


class DirectoryStorageError(DirectoryError):
    """Exception raised when the storage backend fails."""

    pass
