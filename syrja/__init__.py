"""Syrja is a presence and signaling relay for establishing peer links."""
from __future__ import annotations

import importlib.metadata as importlib_metadata

__version__ = importlib_metadata.version('syrja')
