"""Heuristic date-time parser for spreadsheet cell text.

:class:`DateTimeParser` turns raw cell text into a naive local
:class:`~datetime.datetime` using three strategies, first success wins:

1. every layout already in the shared :class:`~ingestkit_tz.patterns.PatternCache`;
2. *dynamic* layouts inferred from the text's separators (``T``, ``/``,
   ``-``), each registered in the cache so later cells reuse it;
3. a generic ``dateutil`` parse of the raw text.

Parsing never raises: an unparseable value returns ``None`` and the caller
decides whether that counts as an error.
"""

from __future__ import annotations

import logging
from datetime import datetime

from dateutil import parser as dateutil_parser

from ingestkit_tz.errors import ConversionError
from ingestkit_tz.patterns import PatternCache

logger = logging.getLogger("ingestkit_tz")

_ISO_FRACTION_WIDTHS = (8, 6, 3)

# Two distinct fill-in dates; a field dateutil takes from the default differs
# between the two parses.
_FILL_DEFAULTS = (datetime(1, 1, 1), datetime(2, 2, 2))

_SLASH_LAYOUTS = (
    "M/d/yyyy H:mm:ss",
    "M/d/yyyy h:mm:ss tt",
    "yyyy/M/d H:mm:ss",
    "d/M/yyyy H:mm:ss",
)

_DASH_LAYOUTS = (
    "yyyy-M-d H:mm:ss",
    "d-M-yyyy H:mm:ss",
    "M-d-yyyy H:mm:ss",
)


def generate_dynamic_layouts(text: str) -> list[str]:
    """Return candidate layouts suggested by the surface shape of *text*.

    The result is de-duplicated and ordered: ISO layouts first, then
    slash-separated, then dash-separated.
    """
    layouts: list[str] = []

    if "T" in text:
        suffix = "'Z'" if text.endswith("Z") else ""
        for width in _ISO_FRACTION_WIDTHS:
            layouts.append(f"yyyy-MM-dd'T'HH:mm:ss.{'f' * width}{suffix}")

    if "/" in text:
        layouts.extend(_SLASH_LAYOUTS)

    if "-" in text and "T" not in text:
        layouts.extend(_DASH_LAYOUTS)

    return list(dict.fromkeys(layouts))


class DateTimeParser:
    """Parse cell text into naive datetimes.

    Parameters
    ----------
    pattern_cache:
        Shared cache of compiled layouts.  Dynamic layouts discovered while
        parsing are added to it.
    generic_fallback:
        When True, text no layout matches is handed to
        ``dateutil.parser.parse`` as a last resort.
    dayfirst:
        Passed to the generic fallback for ambiguous numeric dates.
    """

    def __init__(
        self,
        pattern_cache: PatternCache,
        generic_fallback: bool = True,
        dayfirst: bool = False,
    ) -> None:
        self._cache = pattern_cache
        self._generic_fallback = generic_fallback
        self._dayfirst = dayfirst

    @property
    def pattern_cache(self) -> PatternCache:
        return self._cache

    def parse(
        self,
        text: str | None,
        warnings: list[ConversionError] | None = None,
    ) -> datetime | None:
        """Return the datetime *text* represents, or ``None`` if unparseable.

        Layout-compile warnings hit while trying dynamic layouts are appended
        to *warnings* when given.
        """
        if text is None:
            return None
        candidate = text.strip()
        if not candidate:
            return None

        # 1. Cached layouts
        for pattern in self._cache.snapshot():
            parsed = pattern.parse(candidate)
            if parsed is not None:
                return parsed

        # 2. Dynamic layouts
        for layout in generate_dynamic_layouts(candidate):
            pattern = self._cache.get_or_create(layout, warnings=warnings)
            if pattern is None:
                continue
            parsed = pattern.parse(candidate)
            if parsed is not None:
                return parsed

        # 3. Generic fallback
        if self._generic_fallback:
            return self._parse_generic(candidate)
        return None

    def _parse_generic(self, text: str) -> datetime | None:
        # Text must carry its own year, month and day; "7", "2024" or
        # "Monday" would otherwise be completed from the default date.
        try:
            parsed, check = (
                dateutil_parser.parse(text, default=default, dayfirst=self._dayfirst)
                for default in _FILL_DEFAULTS
            )
        except (ValueError, OverflowError):
            return None
        if (parsed.year, parsed.month, parsed.day) != (check.year, check.month, check.day):
            return None
        if parsed.tzinfo is not None:
            # The request's source zone governs interpretation; keep the
            # wall clock and drop the embedded offset.
            parsed = parsed.replace(tzinfo=None)
        return parsed
