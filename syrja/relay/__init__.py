"""Presence registry, rate limiting, and event relay for signaling.

The relay server lets clients publish a stable identifier and then forward
named signaling events (connection requests, call lifecycle events, and
opaque negotiation payloads) to the connection currently holding another
identifier or to the members of a room. See
[`RelayServer`][syrja.relay.server.RelayServer] for the entry point.
"""
from __future__ import annotations
