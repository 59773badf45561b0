"""Address directory for claiming and resolving human readable addresses.

The directory is a plain unique-key store. A client claims an address once
and publishes the invite code other peers resolve it to. The directory is
served over HTTP by [`create_app()`][syrja.directory.serve.create_app] and
is independent of the relay server's in-memory state.
"""
from __future__ import annotations
