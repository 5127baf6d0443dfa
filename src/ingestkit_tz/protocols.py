"""Collaborator protocols for the ingestkit-tz pipeline.

Defines the structural-subtyping interfaces for the timezone database and
for cooperative cancellation, plus the progress callback signature.  All
protocols are ``@runtime_checkable`` so callers can optionally verify
conformance with ``isinstance`` checks.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import tzinfo
from typing import Protocol, runtime_checkable

ProgressCallback = Callable[[int, int, str], None]
"""Receives ``(processed, total, label)`` at phase and batch boundaries."""


@runtime_checkable
class TimeZoneProvider(Protocol):
    """Interface for timezone databases (e.g. the pytz tz database)."""

    def ids(self) -> Iterable[str]:
        """Return every IANA identifier the provider can resolve."""
        ...

    def contains(self, zone_id: str) -> bool:
        """Return True if *zone_id* is a known identifier (exact match)."""
        ...

    def resolve(self, zone_id: str) -> tzinfo:
        """Return the zone for *zone_id*. Raises if the id is unknown."""
        ...


@runtime_checkable
class CancellationSignal(Protocol):
    """Pollable cancellation flag (``threading.Event`` satisfies this)."""

    def is_set(self) -> bool:
        """Return True once cancellation has been requested."""
        ...
