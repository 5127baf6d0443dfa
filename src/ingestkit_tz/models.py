"""Pydantic data models and enumerations for ingestkit-tz.

Defines the request, per-cell outcome, statistics, progress, and result
models used throughout the conversion pipeline, plus the closed
``CellKind`` variant the cell converter dispatches on.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict

from ingestkit_tz.config import DEFAULT_MAX_FILE_SIZE_BYTES
from ingestkit_tz.errors import ConversionError, ErrorCode


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class CellKind(str, Enum):
    """Native kind of a worksheet cell value.

    Only ``DATETIME`` and ``TEXT`` cells are candidates for conversion; every
    other kind is skipped without counting as an error.
    """

    DATETIME = "datetime"
    NUMBER = "number"
    BOOLEAN = "boolean"
    TEXT = "text"
    EMPTY = "empty"
    OTHER = "other"


class ConversionStatus(str, Enum):
    """Terminal outcome of a file conversion call."""

    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class ConversionRequest(BaseModel):
    """Everything needed to convert one column of one workbook.

    The cancellation signal is passed beside the request, not inside it, so
    the request stays a plain serializable value.
    """

    file_bytes: bytes | None = None
    column_name: str | None = None
    source_timezone: str | None = None
    target_timezone: str | None = None
    max_file_size_bytes: int = DEFAULT_MAX_FILE_SIZE_BYTES


# ---------------------------------------------------------------------------
# Per-cell and progress models
# ---------------------------------------------------------------------------


class CellConversionOutcome(BaseModel):
    """Result of converting a single cell value.

    ``converted_value`` is set iff ``success``.  ``error_message`` is set only
    for failures that count as errors; skipped cells carry neither.
    """

    kind: CellKind
    original_value: str | None = None
    success: bool = False
    converted_value: datetime | None = None
    error_message: str | None = None
    error_code: ErrorCode | None = None

    @property
    def is_error(self) -> bool:
        """True when the failure should be counted against the run."""
        return not self.success and self.error_message is not None


class ConversionProgress(BaseModel):
    """Progress snapshot emitted at phase and batch boundaries."""

    processed_items: int
    total_items: int
    current_operation: str | None = None

    @property
    def percentage_complete(self) -> float:
        if self.total_items <= 0:
            return 0.0
        return self.processed_items / self.total_items * 100


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class ConversionStatistics(BaseModel):
    """Aggregated counters for a completed conversion run (read-only)."""

    model_config = ConfigDict(frozen=True)

    total_rows_processed: int = 0
    successful_conversions: int = 0
    error_count: int = 0
    skipped_count: int = 0
    worksheets_processed: int = 0
    processing_time_seconds: float = 0.0
    warnings: tuple[str, ...] = ()
    column_name: str | None = None
    source_timezone: str | None = None
    target_timezone: str | None = None


class FileConversionResult(BaseModel):
    """Outcome of ``TimezoneConversionRouter.convert_file``.

    ``output_bytes`` and ``statistics`` are present only when ``status`` is
    ``SUCCESS``; failed and cancelled runs never return partial output.
    """

    status: ConversionStatus
    message: str
    output_bytes: bytes | None = None
    statistics: ConversionStatistics | None = None
    error_code: ErrorCode | None = None
    error_details: list[ConversionError] = []
    processing_time_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return self.status == ConversionStatus.SUCCESS


class ValueConversionResult(BaseModel):
    """Outcome of converting a single datetime value."""

    success: bool
    message: str
    converted_value: datetime | None = None
    error_code: ErrorCode | None = None
    processing_time_seconds: float = 0.0


class WorkbookMetadata(BaseModel):
    """Summary of a workbook produced by ``analyze``."""

    columns: list[str] = []
    worksheet_count: int = 0
    row_count: int = 0
    file_size_bytes: int = 0
    is_valid: bool = False


class TimeZoneDetails(BaseModel):
    """Descriptive information about an IANA timezone at the current instant."""

    id: str
    display_name: str
    utc_offset_seconds: int
    current_offset_seconds: int
    supports_dst: bool
