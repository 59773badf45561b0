"""Utilities shared by the relay server and the address directory."""
from __future__ import annotations
