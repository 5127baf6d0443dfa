"""TimezoneConversionRouter -- public API for the ingestkit-tz pipeline.

Routes an uploaded workbook through the full conversion pipeline:

1. Validate the request (file bytes, magic bytes, column, both zones).
2. Hand the workbook to a :class:`WorkbookOrchestrator`, which counts,
   converts, and saves it.
3. Return a fully-assembled :class:`FileConversionResult`.

Validation and pipeline failures never escape :meth:`convert_file`: they
come back as ``ConversionStatus.FAILED`` with a normalized error code.
Cancellation comes back as ``ConversionStatus.CANCELLED``.  Neither carries
output bytes.

The router also exposes single-value conversion, workbook analysis, and
timezone lookups that share the same validator, parser, and zone cache.
"""

from __future__ import annotations

import logging
import time
from datetime import date, datetime, timezone

from ingestkit_tz.batch import BatchRowProcessor
from ingestkit_tz.cells import CellConverter
from ingestkit_tz.config import TimezoneConverterConfig
from ingestkit_tz.converter import TimeZoneConverter
from pydantic import ValidationError

from ingestkit_tz.errors import (
    ConversionCancelled,
    ConversionError,
    ConversionException,
    ErrorCode,
)
from ingestkit_tz.models import (
    ConversionRequest,
    ConversionStatus,
    FileConversionResult,
    TimeZoneDetails,
    ValueConversionResult,
    WorkbookMetadata,
)
from ingestkit_tz.orchestrator import WorkbookOrchestrator, emit_progress
from ingestkit_tz.parser import DateTimeParser
from ingestkit_tz.patterns import PatternCache
from ingestkit_tz.protocols import CancellationSignal, ProgressCallback, TimeZoneProvider
from ingestkit_tz.security import RequestValidator

logger = logging.getLogger("ingestkit_tz")

_UNEXPECTED_FILE_MESSAGE = (
    "An unexpected error occurred while processing the Excel file. "
    "Please try again or contact support."
)
_UNEXPECTED_VALUE_MESSAGE = (
    "An unexpected error occurred during the timezone conversion. "
    "Please verify your input parameters."
)

# Request field -> error code for arguments of the wrong type
_REQUEST_FIELD_CODES = {
    "file_bytes": ErrorCode.E_FILE_MISSING,
    "column_name": ErrorCode.E_COLUMN_REQUIRED,
    "source_timezone": ErrorCode.E_TIMEZONE_INVALID,
    "target_timezone": ErrorCode.E_TIMEZONE_INVALID,
}


def _format_offset(seconds: int) -> str:
    sign = "+" if seconds >= 0 else "-"
    hours, remainder = divmod(abs(seconds), 3600)
    return f"{sign}{hours:02d}:{remainder // 60:02d}"


def _rejected_request(exc: ValidationError) -> FileConversionResult:
    """Map a request that failed model validation to a FAILED result."""
    first = exc.errors()[0]
    field = str(first["loc"][0]) if first["loc"] else "request"
    code = _REQUEST_FIELD_CODES.get(field, ErrorCode.E_UNEXPECTED)
    error = ConversionError(
        code=code,
        message=f"Invalid value for {field}: {first['msg']}",
        stage="validation",
    )
    logger.warning(
        "ingestkit_tz | field=%s | code=%s | detail=%s",
        field,
        code.value,
        error.message,
    )
    return FileConversionResult(
        status=ConversionStatus.FAILED,
        message=error.message,
        error_code=code,
        error_details=[error],
    )


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------


class TimezoneConversionRouter:
    """Entry point that drives timezone conversion of workbook columns.

    Builds the internal components (pattern cache, parser, converter, cell
    converter, batch processor, validator) from the injected provider and
    config, then exposes :meth:`convert_file` and friends as the public API.

    Parameters
    ----------
    provider:
        Timezone database (e.g. :class:`~ingestkit_tz.backends.PytzZoneProvider`).
    config:
        Pipeline configuration. Uses defaults when *None*.
    pattern_cache:
        Shared layout cache. A fresh cache seeded with the common layouts is
        created when *None*.
    """

    def __init__(
        self,
        provider: TimeZoneProvider,
        config: TimezoneConverterConfig | None = None,
        pattern_cache: PatternCache | None = None,
    ) -> None:
        self._config = config or TimezoneConverterConfig()
        self._provider = provider

        # Build internal pipeline components
        self._pattern_cache = pattern_cache if pattern_cache is not None else PatternCache()
        self._parser = DateTimeParser(
            self._pattern_cache,
            generic_fallback=self._config.generic_fallback_parse,
            dayfirst=self._config.dayfirst_fallback,
        )
        self._converter = TimeZoneConverter(provider)
        self._cell_converter = CellConverter(self._parser, self._converter)
        self._batch_processor = BatchRowProcessor(self._cell_converter, self._config)
        self._validator = RequestValidator(self._config, provider)

    @property
    def config(self) -> TimezoneConverterConfig:
        return self._config

    @property
    def pattern_cache(self) -> PatternCache:
        return self._pattern_cache

    # ------------------------------------------------------------------
    # Workbook conversion
    # ------------------------------------------------------------------

    def convert_file(
        self,
        file_bytes: bytes | None,
        column_name: str | None,
        source_timezone: str | None,
        target_timezone: str | None,
        max_file_size_bytes: int | None = None,
        cancel: CancellationSignal | None = None,
        progress: ProgressCallback | None = None,
    ) -> FileConversionResult:
        """Convert every datetime in *column_name* from source to target zone.

        Parameters
        ----------
        file_bytes:
            Raw ``.xlsx`` / ``.xlsm`` content.
        column_name:
            Header text of the column to convert (exact match preferred,
            substring match accepted).
        source_timezone, target_timezone:
            IANA identifiers, e.g. ``"America/New_York"``.
        max_file_size_bytes:
            Size ceiling for this call; defaults to the configured limit.
        cancel:
            Polled at worksheet and batch boundaries.
        progress:
            Receives ``(percent, 100, label)`` at each phase and batch.

        Returns
        -------
        FileConversionResult
            ``SUCCESS`` with output bytes and statistics, or ``FAILED`` /
            ``CANCELLED`` without them.
        """
        try:
            request = ConversionRequest(
                file_bytes=file_bytes,
                column_name=column_name,
                source_timezone=source_timezone,
                target_timezone=target_timezone,
                max_file_size_bytes=(
                    max_file_size_bytes
                    if max_file_size_bytes is not None
                    else self._config.max_file_size_bytes
                ),
            )
        except ValidationError as exc:
            return _rejected_request(exc)
        return self.convert_request(request, cancel=cancel, progress=progress)

    def convert_request(
        self,
        request: ConversionRequest,
        cancel: CancellationSignal | None = None,
        progress: ProgressCallback | None = None,
    ) -> FileConversionResult:
        """Same as :meth:`convert_file`, taking a prepared request."""
        overall_start = time.monotonic()
        config = self._config

        def report(percent: int, label: str) -> None:
            emit_progress(progress, percent, 100, label)

        try:
            # ----------------------------------------------------------
            # Step 1: Validate
            # ----------------------------------------------------------
            report(0, "Validating request...")
            if cancel is not None and cancel.is_set():
                raise ConversionCancelled()

            errors = self._validator.validate(request)
            if errors:
                raise ConversionException(**errors[0].model_dump())

            logger.info(
                "Starting conversion of column '%s' from %s to %s (%d bytes)",
                request.column_name,
                request.source_timezone,
                request.target_timezone,
                len(request.file_bytes or b""),
            )

            # ----------------------------------------------------------
            # Step 2: Convert
            # ----------------------------------------------------------
            report(10, "Analyzing workbook...")
            report(config.processing_progress_low, "Processing...")

            orchestrator = WorkbookOrchestrator(self._batch_processor, config)
            output, statistics = orchestrator.process(
                request.file_bytes or b"",
                request.column_name or "",
                request.source_timezone or "",
                request.target_timezone or "",
                cancel=cancel,
                progress=progress,
                progress_range=(
                    config.processing_progress_low,
                    config.processing_progress_high,
                ),
            )

            report(100, "Conversion completed successfully")

        except ConversionCancelled:
            elapsed = time.monotonic() - overall_start
            logger.info(
                "ingestkit_tz | column=%s | code=%s | detail=%s",
                request.column_name,
                ErrorCode.E_CANCELLED.value,
                "cancelled by caller",
            )
            return FileConversionResult(
                status=ConversionStatus.CANCELLED,
                message="The conversion was cancelled.",
                error_code=ErrorCode.E_CANCELLED,
                processing_time_seconds=elapsed,
            )

        except ConversionException as exc:
            elapsed = time.monotonic() - overall_start
            logger.warning(
                "ingestkit_tz | column=%s | code=%s | detail=%s",
                request.column_name,
                exc.code.value,
                exc.message,
            )
            return FileConversionResult(
                status=ConversionStatus.FAILED,
                message=exc.message,
                error_code=exc.code,
                error_details=[exc.error],
                processing_time_seconds=elapsed,
            )

        except Exception as exc:
            elapsed = time.monotonic() - overall_start
            logger.exception(
                "ingestkit_tz | column=%s | code=%s | detail=%s",
                request.column_name,
                ErrorCode.E_UNEXPECTED.value,
                exc,
            )
            return FileConversionResult(
                status=ConversionStatus.FAILED,
                message=_UNEXPECTED_FILE_MESSAGE,
                error_code=ErrorCode.E_UNEXPECTED,
                processing_time_seconds=elapsed,
            )

        elapsed = time.monotonic() - overall_start
        logger.info(
            "ingestkit_tz | column=%s | source=%s | target=%s | rows=%d | "
            "converted=%d | errors=%d | skipped=%d | sheets=%d | time=%.3fs",
            statistics.column_name,
            statistics.source_timezone,
            statistics.target_timezone,
            statistics.total_rows_processed,
            statistics.successful_conversions,
            statistics.error_count,
            statistics.skipped_count,
            statistics.worksheets_processed,
            elapsed,
        )
        return FileConversionResult(
            status=ConversionStatus.SUCCESS,
            message=(
                f"Successfully converted {statistics.successful_conversions} values "
                f"in column '{statistics.column_name}' from "
                f"{statistics.source_timezone} to {statistics.target_timezone}."
            ),
            output_bytes=output,
            statistics=statistics,
            processing_time_seconds=elapsed,
        )

    def analyze(self, file_bytes: bytes | None) -> WorkbookMetadata:
        """Return the columns, worksheet count, and data-row count of a workbook.

        Raises
        ------
        ConversionException
            ``E_FILE_MISSING`` / ``E_FILE_FORMAT`` for bytes that are not a
            ZIP container, ``E_FILE_CORRUPT`` if openpyxl cannot read them.
        """
        if not file_bytes:
            raise ConversionException(
                code=ErrorCode.E_FILE_MISSING,
                message="Please provide a valid Excel file to process.",
                stage="security",
                recoverable=False,
            )
        errors = self._validator.scan_magic(file_bytes)
        if errors:
            raise ConversionException(**errors[0].model_dump())
        orchestrator = WorkbookOrchestrator(self._batch_processor, self._config)
        return orchestrator.analyze(file_bytes)

    # ------------------------------------------------------------------
    # Single values
    # ------------------------------------------------------------------

    def convert_value(
        self,
        value: datetime | date | str | None,
        source_timezone: str | None,
        target_timezone: str | None,
    ) -> datetime:
        """Convert one wall-clock value; raise :class:`ConversionException` on failure."""
        result = self.convert_value_with_result(value, source_timezone, target_timezone)
        if not result.success or result.converted_value is None:
            raise ConversionException(
                code=result.error_code or ErrorCode.E_UNEXPECTED,
                message=result.message,
                stage="convert",
                recoverable=False,
            )
        return result.converted_value

    def convert_value_with_result(
        self,
        value: datetime | date | str | None,
        source_timezone: str | None,
        target_timezone: str | None,
    ) -> ValueConversionResult:
        """Convert one wall-clock value, reporting failure in the result.

        Strings are parsed with the same parser used for cell text.  A
        ``date`` is read as midnight.
        """
        start = time.monotonic()
        try:
            if value is None or (isinstance(value, str) and not value.strip()):
                raise ConversionException(
                    code=ErrorCode.E_VALUE_REQUIRED,
                    message="A datetime value is required.",
                    stage="validation",
                    recoverable=False,
                )
            errors = self._validator.check_timezones(source_timezone, target_timezone)
            if errors:
                raise ConversionException(**errors[0].model_dump())
            local = self._coerce_value(value)

            logger.debug(
                "Converting value from %s to %s", source_timezone, target_timezone
            )
            try:
                converted = self._converter.convert(
                    local, source_timezone or "", target_timezone or ""
                )
            except Exception as exc:
                raise ConversionException(
                    code=ErrorCode.E_CONVERSION_FAILED,
                    message=(
                        f"Failed to convert datetime from {source_timezone} to "
                        f"{target_timezone}. Please verify the datetime value and "
                        "timezone parameters."
                    ),
                    stage="convert",
                    recoverable=False,
                ) from exc

        except ConversionException as exc:
            logger.warning(
                "ingestkit_tz | value | code=%s | detail=%s", exc.code.value, exc.message
            )
            return ValueConversionResult(
                success=False,
                message=exc.message,
                error_code=exc.code,
                processing_time_seconds=time.monotonic() - start,
            )
        except Exception as exc:
            logger.exception("Unexpected error during timezone conversion: %s", exc)
            return ValueConversionResult(
                success=False,
                message=_UNEXPECTED_VALUE_MESSAGE,
                error_code=ErrorCode.E_UNEXPECTED,
                processing_time_seconds=time.monotonic() - start,
            )

        return ValueConversionResult(
            success=True,
            message=f"Successfully converted from {source_timezone} to {target_timezone}",
            converted_value=converted,
            processing_time_seconds=time.monotonic() - start,
        )

    def _coerce_value(self, value: datetime | date | str) -> datetime:
        if isinstance(value, datetime):
            return value
        if isinstance(value, date):
            return datetime.combine(value, datetime.min.time())
        parsed = self._parser.parse(value)
        if parsed is None:
            raise ConversionException(
                code=ErrorCode.E_PARSE_DATETIME,
                message=f"Could not parse datetime: '{value}'",
                stage="parse",
                recoverable=False,
            )
        return parsed

    # ------------------------------------------------------------------
    # Timezone lookups
    # ------------------------------------------------------------------

    def list_timezones(self) -> list[str]:
        """Return every known zone id, sorted; the fallback list on failure."""
        try:
            return sorted(self._provider.ids())
        except Exception as exc:
            logger.warning("Unable to list timezones, using fallback list: %s", exc)
            return list(self._config.fallback_timezones)

    def is_valid_timezone(self, zone_id: str | None) -> bool:
        return self._validator.is_valid_timezone(zone_id)

    def get_timezone_details(self, zone_id: str | None) -> TimeZoneDetails:
        """Describe *zone_id* at the current instant.

        Raises
        ------
        ConversionException
            ``E_TIMEZONE_REQUIRED`` or ``E_TIMEZONE_INVALID``.
        """
        errors = self._validator.check_timezone(zone_id, "requested")
        if errors:
            raise ConversionException(**errors[0].model_dump())
        zone = self._converter.resolve(zone_id)  # type: ignore[arg-type]
        now = datetime.now(timezone.utc)
        local_now = now.astimezone(zone)
        current = local_now.utcoffset()
        dst = local_now.dst()
        current_seconds = int(current.total_seconds()) if current is not None else 0
        dst_seconds = int(dst.total_seconds()) if dst is not None else 0
        standard_seconds = current_seconds - dst_seconds

        # Compare mid-winter and mid-summer offsets of the current year.
        offsets = {
            datetime(now.year, month, 1, tzinfo=timezone.utc).astimezone(zone).utcoffset()
            for month in (1, 7)
        }
        supports_dst = len(offsets) > 1 or dst_seconds != 0

        return TimeZoneDetails(
            id=zone_id,
            display_name=f"(UTC{_format_offset(standard_seconds)}) {zone_id}",
            utc_offset_seconds=standard_seconds,
            current_offset_seconds=current_seconds,
            supports_dst=supports_dst,
        )


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def create_default_router(**overrides) -> TimezoneConversionRouter:
    """Create a TimezoneConversionRouter backed by the pytz tz database.

    Convenience factory for applications and tests.  All defaults can be
    overridden via keyword arguments:

    - ``provider``: TimeZoneProvider (default: PytzZoneProvider)
    - ``pattern_cache``: PatternCache (default: a fresh PatternCache)
    - ``config``: TimezoneConverterConfig (default: TimezoneConverterConfig())

    Any other keyword arguments are passed to TimezoneConverterConfig.

    Returns
    -------
    TimezoneConversionRouter
        A fully-configured router ready for ``convert_file()`` calls.
    """
    from ingestkit_tz.backends import PytzZoneProvider

    # Separate known router kwargs from config overrides
    router_keys = {"provider", "pattern_cache", "config"}
    router_kwargs = {k: v for k, v in overrides.items() if k in router_keys}
    config_kwargs = {k: v for k, v in overrides.items() if k not in router_keys}

    config = router_kwargs.pop("config", None)
    if config is None and config_kwargs:
        config = TimezoneConverterConfig(**config_kwargs)
    elif config is None:
        config = TimezoneConverterConfig()

    provider = router_kwargs.pop("provider", None)
    if provider is None:
        provider = PytzZoneProvider()

    return TimezoneConversionRouter(
        provider=provider,
        config=config,
        pattern_cache=router_kwargs.pop("pattern_cache", None),
    )
