"""Wall-clock conversion between IANA timezones.

:class:`TimeZoneConverter` interprets a naive datetime as local time in a
source zone and re-expresses the same instant as local time in a target
zone.  Local times that fall on a DST transition are resolved leniently:

* an **ambiguous** time (clocks fall back, the wall clock occurs twice)
  resolves to the earlier instant, the one still carrying the DST offset;
* a **skipped** time (clocks spring forward, the wall clock never occurs)
  is read with the offset in force before the gap, which moves it forward
  by the length of the gap (02:30 in a 02:00→03:00 gap becomes 03:30).

Zone ids are assumed to be validated by the caller; an unknown id raises
the provider's error unchanged.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, tzinfo

import pytz

from ingestkit_tz.protocols import TimeZoneProvider

logger = logging.getLogger("ingestkit_tz")


def localize_leniently(local: datetime, zone: tzinfo) -> datetime:
    """Attach *zone* to naive *local*, resolving DST edge cases leniently."""
    localize = getattr(zone, "localize", None)
    if localize is None:
        # zoneinfo-style zones: fold=0 already picks the earlier instant for
        # ambiguous times and the pre-transition offset for skipped times.
        return local.replace(tzinfo=zone, fold=0)

    try:
        return localize(local, is_dst=None)
    except pytz.exceptions.AmbiguousTimeError:
        return localize(local, is_dst=True)
    except pytz.exceptions.NonExistentTimeError:
        return zone.normalize(localize(local, is_dst=False))


class TimeZoneConverter:
    """Convert naive local datetimes between zones.

    Resolved zones are cached by id for the converter's lifetime, so a
    converter shared across conversions resolves each id once.

    Parameters
    ----------
    provider:
        Timezone database used to resolve ids.
    """

    def __init__(self, provider: TimeZoneProvider) -> None:
        self._provider = provider
        self._zones: dict[str, tzinfo] = {}
        self._lock = threading.Lock()

    @property
    def provider(self) -> TimeZoneProvider:
        return self._provider

    def resolve(self, zone_id: str) -> tzinfo:
        """Return the cached zone for *zone_id*, resolving it on first use."""
        zone = self._zones.get(zone_id)
        if zone is not None:
            return zone
        zone = self._provider.resolve(zone_id)
        with self._lock:
            return self._zones.setdefault(zone_id, zone)

    def convert(self, local: datetime, source_id: str, target_id: str) -> datetime:
        """Return *local* (wall clock in *source_id*) as wall clock in *target_id*.

        Any tzinfo already attached to *local* is ignored: the value is
        treated as a wall-clock reading.
        """
        source_zone = self.resolve(source_id)
        target_zone = self.resolve(target_id)

        zoned = localize_leniently(local.replace(tzinfo=None), source_zone)
        return zoned.astimezone(target_zone).replace(tzinfo=None)
