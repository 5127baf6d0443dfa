"""Date-time layout compilation and the shared pattern cache.

Layouts use the familiar spreadsheet/.NET notation (``yyyy-MM-dd'T'HH:mm:ss``)
and are compiled once into an anchored regular expression plus the list of
fields it captures.  :class:`PatternCache` keeps compiled layouts for the
lifetime of the process and is safe to share between concurrent conversions:
readers iterate an immutable snapshot, writers serialize on a lock and the
insert is idempotent.

Supported layout tokens:

=========  ==============================================
``yyyy``   four-digit year
``MM``     two-digit month (``M``: one or two digits)
``dd``     two-digit day (``d``: one or two digits)
``HH``     two-digit 24-hour hour (``H``: one or two)
``hh``     two-digit 12-hour hour (``h``: one or two)
``mm``     two-digit minute (``m``: one or two)
``ss``     two-digit second (``s``: one or two)
``f``...   exactly N fractional-second digits (N <= 9)
``tt``     ``AM`` / ``PM`` designator, case-insensitive
``'..'``   quoted literal text
=========  ==============================================

Any other letter is rejected with :class:`PatternCompileError`.
"""

from __future__ import annotations

import logging
import re
import threading
from datetime import datetime

from ingestkit_tz.errors import ConversionError, ErrorCode

logger = logging.getLogger("ingestkit_tz")

COMMON_PATTERNS: tuple[str, ...] = (
    "yyyy-MM-dd HH:mm:ss",
    "yyyy-MM-dd'T'HH:mm:ss",
    "yyyy-MM-dd'T'HH:mm:ss'Z'",
    "yyyy-MM-dd'T'HH:mm:ss.fff'Z'",
    "MM/dd/yyyy HH:mm:ss",
    "dd/MM/yyyy HH:mm:ss",
    "yyyy/MM/dd HH:mm:ss",
    "MM-dd-yyyy HH:mm:ss",
    "dd-MM-yyyy HH:mm:ss",
    "M/d/yyyy h:mm:ss tt",
    "d/M/yyyy H:mm:ss",
)

# letter -> (field name, allowed widths)
_FIELD_TOKENS: dict[str, tuple[str, frozenset[int]]] = {
    "y": ("year", frozenset({4})),
    "M": ("month", frozenset({1, 2})),
    "d": ("day", frozenset({1, 2})),
    "H": ("hour", frozenset({1, 2})),
    "h": ("hour12", frozenset({1, 2})),
    "m": ("minute", frozenset({1, 2})),
    "s": ("second", frozenset({1, 2})),
    "f": ("fraction", frozenset(range(1, 10))),
    "t": ("designator", frozenset({2})),
}

_MAX_FRACTION_DIGITS = 6


class PatternCompileError(ValueError):
    """Raised when a layout string cannot be compiled."""


class CompiledPattern:
    """A layout string bound to its compiled matcher.

    Instances are immutable and a pure function of their layout, so two
    threads compiling the same layout produce interchangeable objects.
    """

    __slots__ = ("layout", "_regex", "_tokens")

    def __init__(
        self,
        layout: str,
        regex: re.Pattern[str],
        tokens: tuple[tuple[str, str | int], ...],
    ) -> None:
        self.layout = layout
        self._regex = regex
        self._tokens = tokens

    def __repr__(self) -> str:
        return f"CompiledPattern({self.layout!r})"

    def parse(self, text: str) -> datetime | None:
        """Return the naive datetime *text* represents, or ``None``.

        The whole text must match.  Out-of-range values (month 13,
        February 30, hour 25) are a non-match rather than an error.
        """
        match = self._regex.fullmatch(text)
        if match is None:
            return None
        fields = match.groupdict()

        hour = int(fields.get("hour") or 0)
        if fields.get("hour12") is not None:
            hour12 = int(fields["hour12"])
            if not 1 <= hour12 <= 12:
                return None
            is_pm = fields["designator"].upper() == "PM"
            hour = hour12 % 12 + (12 if is_pm else 0)

        fraction = fields.get("fraction") or ""
        microsecond = int(fraction[:_MAX_FRACTION_DIGITS].ljust(_MAX_FRACTION_DIGITS, "0"))

        try:
            return datetime(
                int(fields["year"]),
                int(fields.get("month") or 1),
                int(fields.get("day") or 1),
                hour,
                int(fields.get("minute") or 0),
                int(fields.get("second") or 0),
                microsecond,
            )
        except ValueError:
            return None

    def format(self, value: datetime) -> str:
        """Render *value* with this layout (inverse of :meth:`parse`)."""
        parts: list[str] = []
        for kind, arg in self._tokens:
            if kind == "literal":
                parts.append(str(arg))
                continue
            width = int(arg)
            if kind == "year":
                parts.append(f"{value.year:04d}")
            elif kind == "month":
                parts.append(f"{value.month:0{width}d}")
            elif kind == "day":
                parts.append(f"{value.day:0{width}d}")
            elif kind == "hour":
                parts.append(f"{value.hour:0{width}d}")
            elif kind == "hour12":
                parts.append(f"{(value.hour % 12) or 12:0{width}d}")
            elif kind == "minute":
                parts.append(f"{value.minute:0{width}d}")
            elif kind == "second":
                parts.append(f"{value.second:0{width}d}")
            elif kind == "fraction":
                digits = f"{value.microsecond:06d}".ljust(width, "0")
                parts.append(digits[:width])
            elif kind == "designator":
                parts.append("PM" if value.hour >= 12 else "AM")
        return "".join(parts)


def _field_regex(name: str, width: int) -> str:
    if name == "designator":
        return r"(?P<designator>[AaPp][Mm])"
    if name in ("year", "fraction"):
        return rf"(?P<{name}>\d{{{width}}})"
    if width == 1:
        return rf"(?P<{name}>\d{{1,2}})"
    return rf"(?P<{name}>\d{{2}})"


def compile_pattern(layout: str) -> CompiledPattern:
    """Compile *layout* into a :class:`CompiledPattern`.

    Raises
    ------
    PatternCompileError
        If the layout is empty, uses an unsupported token or width, repeats
        a field, leaves a quote unterminated, or mixes 12-hour and 24-hour
        fields inconsistently.
    """
    if not layout:
        raise PatternCompileError("Layout is empty")

    regex_parts: list[str] = []
    tokens: list[tuple[str, str | int]] = []
    seen: set[str] = set()
    i = 0
    n = len(layout)

    while i < n:
        ch = layout[i]

        if ch == "'":
            end = layout.find("'", i + 1)
            if end == -1:
                raise PatternCompileError(f"Unterminated quote in layout '{layout}'")
            literal = layout[i + 1:end]
            regex_parts.append(re.escape(literal))
            tokens.append(("literal", literal))
            i = end + 1
            continue

        if ch == "\\":
            if i + 1 >= n:
                raise PatternCompileError(f"Dangling escape in layout '{layout}'")
            regex_parts.append(re.escape(layout[i + 1]))
            tokens.append(("literal", layout[i + 1]))
            i += 2
            continue

        if ch.isalpha():
            j = i
            while j < n and layout[j] == ch:
                j += 1
            width = j - i
            field_def = _FIELD_TOKENS.get(ch)
            if field_def is None:
                raise PatternCompileError(f"Unsupported token '{ch * width}' in layout '{layout}'")
            name, widths = field_def
            if width not in widths:
                raise PatternCompileError(
                    f"Unsupported width for token '{ch * width}' in layout '{layout}'"
                )
            if name in seen:
                raise PatternCompileError(f"Field '{name}' repeated in layout '{layout}'")
            seen.add(name)
            regex_parts.append(_field_regex(name, width))
            tokens.append((name, width))
            i = j
            continue

        regex_parts.append(re.escape(ch))
        tokens.append(("literal", ch))
        i += 1

    if "year" not in seen:
        raise PatternCompileError(f"Layout '{layout}' has no year field")
    if ("hour12" in seen) != ("designator" in seen):
        raise PatternCompileError(
            f"Layout '{layout}' must pair 12-hour fields with 'tt'"
        )
    if "hour12" in seen and "hour" in seen:
        raise PatternCompileError(f"Layout '{layout}' mixes 12-hour and 24-hour fields")

    try:
        regex = re.compile("".join(regex_parts))
    except re.error as exc:
        raise PatternCompileError(f"Layout '{layout}' did not compile: {exc}") from exc

    return CompiledPattern(layout, regex, tuple(tokens))


class PatternCache:
    """Process-wide registry of compiled layouts keyed by layout string.

    Parameters
    ----------
    layouts:
        Layouts to compile eagerly.  Layouts that fail to compile are
        recorded once in :attr:`warnings` and never retried; runs collect
        their own copy through ``get_or_create(..., warnings=...)``.
    """

    def __init__(self, layouts: tuple[str, ...] | list[str] = COMMON_PATTERNS) -> None:
        self._lock = threading.Lock()
        self._patterns: dict[str, CompiledPattern] = {}
        self._snapshot: tuple[CompiledPattern, ...] = ()
        self._rejected: dict[str, ConversionError] = {}
        self.warnings: list[ConversionError] = []

        for layout in layouts:
            self.get_or_create(layout)

    def __len__(self) -> int:
        return len(self._snapshot)

    def __contains__(self, layout: object) -> bool:
        return layout in self._patterns

    def snapshot(self) -> tuple[CompiledPattern, ...]:
        """Return the patterns currently cached, in insertion order."""
        return self._snapshot

    def is_rejected(self, layout: str) -> bool:
        return layout in self._rejected

    def get_or_create(
        self,
        layout: str,
        warnings: list[ConversionError] | None = None,
    ) -> CompiledPattern | None:
        """Return the compiled pattern for *layout*, compiling on first use.

        Returns ``None`` when the layout does not compile. The failure is
        logged once and recorded in :attr:`warnings`; the layout is skipped
        from then on.  Every lookup of a rejected layout also appends its
        warning to the caller's own *warnings* list when one is given.
        """
        existing = self._patterns.get(layout)
        if existing is not None:
            return existing
        rejection = self._rejected.get(layout)
        if rejection is None:
            try:
                compiled = compile_pattern(layout)
            except PatternCompileError as exc:
                rejection = self._reject(layout, exc)
            else:
                with self._lock:
                    stored = self._patterns.setdefault(layout, compiled)
                    if stored is compiled:
                        self._snapshot = self._snapshot + (compiled,)
                return stored

        if warnings is not None:
            warnings.append(rejection)
        return None

    def _reject(self, layout: str, exc: PatternCompileError) -> ConversionError:
        with self._lock:
            existing = self._rejected.get(layout)
            if existing is not None:
                return existing
            rejection = ConversionError(
                code=ErrorCode.W_PATTERN_INVALID,
                message=f"Failed to create pattern for {layout}: {exc}",
                stage="parse",
                recoverable=True,
            )
            self._rejected[layout] = rejection
            self.warnings.append(rejection)
        logger.warning("Failed to create pattern for %s: %s", layout, exc)
        return rejection
