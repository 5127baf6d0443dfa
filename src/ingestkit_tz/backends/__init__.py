"""Concrete backend implementations for ingestkit-tz."""

from __future__ import annotations

from ingestkit_tz.backends.tzdb import PytzZoneProvider

__all__ = [
    "PytzZoneProvider",
]
