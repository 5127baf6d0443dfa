"""pytz backend for the TimeZoneProvider protocol.

Serves the IANA tz database bundled with ``pytz``.  Suitable as the default
provider for all deployments; tests may substitute a smaller provider.
"""

from __future__ import annotations

import logging
from datetime import tzinfo

import pytz

logger = logging.getLogger("ingestkit_tz")


class PytzZoneProvider:
    """IANA timezone database backed by ``pytz``.

    Satisfies :class:`~ingestkit_tz.protocols.TimeZoneProvider` via
    structural subtyping (no inheritance required).  Lookups are exact and
    case-sensitive, matching the canonical IANA spelling.
    """

    def ids(self) -> list[str]:
        """Return every identifier known to ``pytz`` (including aliases)."""
        return list(pytz.all_timezones)

    def contains(self, zone_id: str) -> bool:
        return zone_id in pytz.all_timezones_set

    def resolve(self, zone_id: str) -> tzinfo:
        """Return the ``pytz`` zone for *zone_id*.

        Raises
        ------
        pytz.UnknownTimeZoneError
            If *zone_id* is not in the database.
        """
        if zone_id not in pytz.all_timezones_set:
            raise pytz.UnknownTimeZoneError(zone_id)
        return pytz.timezone(zone_id)
