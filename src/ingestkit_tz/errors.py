"""Normalized error codes and structured error model for the ingestkit-tz pipeline."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class ErrorCode(str, Enum):
    """Normalized error codes for the ingestkit-tz pipeline.

    All errors and warnings use a stable string code suitable for metrics,
    alerting, and programmatic handling. Codes prefixed with ``E_`` are errors;
    codes prefixed with ``W_`` are non-fatal warnings.
    """

    # Validation errors
    E_FILE_MISSING = "E_FILE_MISSING"
    E_FILE_TOO_LARGE = "E_FILE_TOO_LARGE"
    E_FILE_FORMAT = "E_FILE_FORMAT"
    E_FILE_CORRUPT = "E_FILE_CORRUPT"
    E_COLUMN_REQUIRED = "E_COLUMN_REQUIRED"
    E_COLUMN_NOT_FOUND = "E_COLUMN_NOT_FOUND"
    E_TIMEZONE_REQUIRED = "E_TIMEZONE_REQUIRED"
    E_TIMEZONE_INVALID = "E_TIMEZONE_INVALID"
    E_VALUE_REQUIRED = "E_VALUE_REQUIRED"

    # Parsing / conversion errors
    E_PARSE_DATETIME = "E_PARSE_DATETIME"
    E_CONVERSION_FAILED = "E_CONVERSION_FAILED"

    # Run outcome
    E_CANCELLED = "E_CANCELLED"
    E_UNEXPECTED = "E_UNEXPECTED"

    # Warnings (non-fatal)
    W_PATTERN_INVALID = "W_PATTERN_INVALID"
    W_CELL_PARSE_FAILED = "W_CELL_PARSE_FAILED"
    W_CELL_CONVERT_FAILED = "W_CELL_CONVERT_FAILED"
    W_ROW_FAILED = "W_ROW_FAILED"
    W_WARNINGS_TRUNCATED = "W_WARNINGS_TRUNCATED"


class ConversionError(BaseModel):
    """Structured error with code, message, and context.

    Provides a normalized representation for validation failures, per-cell
    warnings, and run-level errors. ``sheet_name`` and ``cell_ref`` locate
    the problem inside the workbook when it is cell-specific.

    Note: This is a Pydantic model (data structure), not a Python Exception.
    Use ``ConversionException`` to raise one.
    """

    code: ErrorCode
    message: str
    sheet_name: str | None = None
    cell_ref: str | None = None
    stage: str | None = None
    recoverable: bool = False


class ConversionException(Exception):
    """Raisable exception wrapping a ``ConversionError`` data model.

    ``message`` is user-facing: it is safe to show to whoever submitted the
    file. The structured model is available as ``.error``.
    """

    def __init__(self, **kwargs: object) -> None:
        self.error = ConversionError(**kwargs)  # type: ignore[arg-type]
        super().__init__(self.error.message)

    @property
    def code(self) -> ErrorCode:
        return self.error.code

    @property
    def message(self) -> str:
        return self.error.message

    @property
    def stage(self) -> str | None:
        return self.error.stage

    @property
    def recoverable(self) -> bool:
        return self.error.recoverable


class ConversionCancelled(Exception):
    """Raised at a worksheet or batch boundary once cancellation is requested.

    Cancellation is not a failure: the router maps it to
    ``ConversionStatus.CANCELLED`` and discards any partial output.
    """
