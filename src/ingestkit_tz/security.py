"""Input validation for ingestkit-tz requests.

Checks the uploaded bytes (presence, size, ZIP/OOXML magic bytes), the
target column name, and both timezone identifiers before any workbook is
opened.  All checks are fail-fast: the first fatal error stops further
checks.
"""

from __future__ import annotations

import logging

from ingestkit_tz.config import TimezoneConverterConfig
from ingestkit_tz.errors import ConversionError, ErrorCode
from ingestkit_tz.models import ConversionRequest
from ingestkit_tz.protocols import TimeZoneProvider

logger = logging.getLogger("ingestkit_tz")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_XLSX_MAGIC: tuple[bytes, int] = (b"PK\x03\x04", 4)  # ZIP/OOXML container

_BYTES_PER_MB = 1024 * 1024


# ---------------------------------------------------------------------------
# RequestValidator
# ---------------------------------------------------------------------------


class RequestValidator:
    """Validates conversion requests against the size limit and the tz database.

    Parameters
    ----------
    config:
        Supplies the suggestion limit and the fallback zone list.
    provider:
        Timezone database that decides which identifiers are valid.
    """

    def __init__(self, config: TimezoneConverterConfig, provider: TimeZoneProvider) -> None:
        self._config = config
        self._provider = provider

    # ------------------------------------------------------------------
    # File checks
    # ------------------------------------------------------------------

    def scan_file(self, data: bytes | None, max_size_bytes: int) -> list[ConversionError]:
        """Run the file-level checks on raw upload bytes.

        Returns a list holding at most one error (empty if all checks pass).
        """
        errors: list[ConversionError] = []

        # 1. Presence
        if not data:
            errors.append(
                ConversionError(
                    code=ErrorCode.E_FILE_MISSING,
                    message="Please provide a valid Excel file to process.",
                    stage="security",
                    recoverable=False,
                )
            )
            return errors

        # 2. Size ceiling
        if len(data) > max_size_bytes:
            errors.append(
                ConversionError(
                    code=ErrorCode.E_FILE_TOO_LARGE,
                    message=(
                        f"File size ({len(data) / _BYTES_PER_MB:.1f} MB) exceeds the "
                        f"maximum allowed size of {max_size_bytes // _BYTES_PER_MB} MB."
                    ),
                    stage="security",
                    recoverable=False,
                )
            )
            return errors

        # 3. Magic bytes
        errors.extend(self.scan_magic(data))
        return errors

    def scan_magic(self, data: bytes) -> list[ConversionError]:
        """Check that *data* starts with the ZIP local-file header."""
        expected_bytes, expected_len = _XLSX_MAGIC
        if len(data) < expected_len:
            return [
                ConversionError(
                    code=ErrorCode.E_FILE_FORMAT,
                    message="The uploaded file is too small to be a valid Excel file.",
                    stage="security",
                    recoverable=False,
                )
            ]
        if data[:expected_len] != expected_bytes:
            logger.warning(
                "Magic byte mismatch: expected %r, got %r",
                expected_bytes,
                data[:expected_len],
            )
            return [
                ConversionError(
                    code=ErrorCode.E_FILE_FORMAT,
                    message=(
                        "The uploaded file is not a valid Excel format. "
                        "Please upload a .xlsx or .xlsm file."
                    ),
                    stage="security",
                    recoverable=False,
                )
            ]
        return []

    # ------------------------------------------------------------------
    # Timezone checks
    # ------------------------------------------------------------------

    def is_valid_timezone(self, zone_id: str | None) -> bool:
        """True when *zone_id* is non-blank and an exact provider id."""
        if zone_id is None or not zone_id.strip():
            return False
        return self._provider.contains(zone_id)

    def timezone_suggestions(self, zone_id: str | None) -> list[str]:
        """Return provider ids containing *zone_id* (case-insensitive).

        At most ``max_timezone_suggestions`` ids are returned; when nothing
        matches, the configured fallback zones are suggested instead.
        """
        if zone_id is None or not zone_id.strip():
            return list(self._config.fallback_timezones)
        needle = zone_id.strip().casefold()
        matches: list[str] = []
        for candidate in sorted(self._provider.ids()):
            if needle in candidate.casefold():
                matches.append(candidate)
                if len(matches) >= self._config.max_timezone_suggestions:
                    break
        return matches or list(self._config.fallback_timezones)

    def check_timezone(self, zone_id: str | None, role: str) -> list[ConversionError]:
        """Validate one zone id; *role* is ``"source"`` or ``"target"``."""
        if zone_id is None or not zone_id.strip():
            return [
                ConversionError(
                    code=ErrorCode.E_TIMEZONE_REQUIRED,
                    message=f"{role.capitalize()} time zone is required.",
                    stage="validation",
                    recoverable=False,
                )
            ]
        if not self.is_valid_timezone(zone_id):
            suggestions = ", ".join(self.timezone_suggestions(zone_id))
            return [
                ConversionError(
                    code=ErrorCode.E_TIMEZONE_INVALID,
                    message=(
                        f"Invalid {role} time zone '{zone_id}'. "
                        f"Did you mean: {suggestions}?"
                    ),
                    stage="validation",
                    recoverable=False,
                )
            ]
        return []

    def check_timezones(
        self, source_id: str | None, target_id: str | None
    ) -> list[ConversionError]:
        """Validate both zones: required checks first, then existence."""
        for zone_id, role in ((source_id, "source"), (target_id, "target")):
            if zone_id is None or not zone_id.strip():
                return self.check_timezone(zone_id, role)
        return self.check_timezone(source_id, "source") or self.check_timezone(
            target_id, "target"
        )

    # ------------------------------------------------------------------
    # Whole request
    # ------------------------------------------------------------------

    def validate(self, request: ConversionRequest) -> list[ConversionError]:
        """Validate *request* in order: file, column, then timezones.

        Returns the first error found as a one-element list, or an empty list.
        """
        errors = self.scan_file(request.file_bytes, request.max_file_size_bytes)
        if errors:
            return errors

        if request.column_name is None or not request.column_name.strip():
            return [
                ConversionError(
                    code=ErrorCode.E_COLUMN_REQUIRED,
                    message="Column name is required and cannot be empty.",
                    stage="validation",
                    recoverable=False,
                )
            ]

        return self.check_timezones(request.source_timezone, request.target_timezone)
