"""Exception types raised by the relay server."""
from __future__ import annotations


class RelayServerError(Exception):
    """Base exception type for exceptions raised by relay server."""

    pass


class BadRequestError(RelayServerError):
    """A runtime exception indicating a bad client request."""

    pass


class IdentifierAlreadyAttachedError(BadRequestError):
    """Connection attempted to register a second, different identifier."""

    pass
