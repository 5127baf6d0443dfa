"""Per-cell conversion: classify a cell's native kind, parse, and convert."""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from ingestkit_tz.converter import TimeZoneConverter
from ingestkit_tz.errors import ConversionError, ErrorCode
from ingestkit_tz.models import CellConversionOutcome, CellKind
from ingestkit_tz.parser import DateTimeParser

logger = logging.getLogger("ingestkit_tz")

# openpyxl data_type codes that never hold a convertible literal
_NON_LITERAL_DATA_TYPES = frozenset({"f", "e"})


def classify_cell(value: object, data_type: str | None = None) -> CellKind:
    """Return the :class:`CellKind` for a cell value.

    *data_type* is the openpyxl ``Cell.data_type`` code when known; formula
    (``f``) and error (``e``) cells are always ``OTHER``.
    """
    if data_type in _NON_LITERAL_DATA_TYPES:
        return CellKind.OTHER
    if value is None:
        return CellKind.EMPTY
    if isinstance(value, bool):
        return CellKind.BOOLEAN
    if isinstance(value, datetime):
        return CellKind.DATETIME
    if isinstance(value, date):
        return CellKind.DATETIME
    if isinstance(value, (time, timedelta)):
        return CellKind.OTHER
    if isinstance(value, (int, float, Decimal)):
        return CellKind.NUMBER
    if isinstance(value, str):
        return CellKind.TEXT if value.strip() else CellKind.EMPTY
    return CellKind.OTHER


class CellConverter:
    """Convert one cell value from a source zone to a target zone.

    Returns a :class:`CellConversionOutcome` for every input; nothing is
    raised for unparseable text or converter failures.
    """

    def __init__(self, parser: DateTimeParser, converter: TimeZoneConverter) -> None:
        self._parser = parser
        self._converter = converter

    def convert_cell(
        self,
        value: object,
        source_id: str,
        target_id: str,
        data_type: str | None = None,
        warnings: list[ConversionError] | None = None,
    ) -> CellConversionOutcome:
        kind = classify_cell(value, data_type)

        if kind == CellKind.DATETIME:
            local = value if isinstance(value, datetime) else datetime.combine(value, time())  # type: ignore[arg-type]
            return self._convert(kind, local, str(value), source_id, target_id)

        if kind == CellKind.TEXT:
            text = str(value)
            parsed = self._parser.parse(text, warnings=warnings)
            if parsed is None:
                return CellConversionOutcome(
                    kind=kind,
                    original_value=text,
                    success=False,
                    error_message=f"Could not parse datetime: '{text}'",
                    error_code=ErrorCode.E_PARSE_DATETIME,
                )
            return self._convert(kind, parsed, text, source_id, target_id)

        # NUMBER, BOOLEAN, EMPTY, OTHER: not a timestamp, skip silently.
        return CellConversionOutcome(
            kind=kind,
            original_value=None if value is None else str(value),
            success=False,
        )

    def _convert(
        self,
        kind: CellKind,
        local: datetime,
        original: str,
        source_id: str,
        target_id: str,
    ) -> CellConversionOutcome:
        try:
            converted = self._converter.convert(local, source_id, target_id)
        except Exception as exc:
            logger.debug("Conversion failed for %s -> %s: %s", source_id, target_id, exc)
            return CellConversionOutcome(
                kind=kind,
                original_value=original,
                success=False,
                error_message=f"Failed to convert datetime from {source_id} to {target_id}: {exc}",
                error_code=ErrorCode.E_CONVERSION_FAILED,
            )
        return CellConversionOutcome(
            kind=kind,
            original_value=original,
            success=True,
            converted_value=converted,
        )
