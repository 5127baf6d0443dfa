"""Batched, sequential conversion of one column across a worksheet's rows.

Rows are consumed in order in fixed-size batches.  Batch boundaries are the
points where running totals are published, progress is reported, and the
cancellation signal is polled.  Cells are rewritten in place; openpyxl
worksheets are not safe for concurrent mutation, so there is no fan-out.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from itertools import islice

from openpyxl.styles.numbers import is_date_format

from ingestkit_tz.cells import CellConverter
from ingestkit_tz.config import TimezoneConverterConfig
from ingestkit_tz.errors import ConversionCancelled, ConversionError, ErrorCode
from ingestkit_tz.models import CellConversionOutcome
from ingestkit_tz.protocols import CancellationSignal
from ingestkit_tz.workbook import Row

logger = logging.getLogger("ingestkit_tz")

_WARNING_CODE_FOR = {
    ErrorCode.E_PARSE_DATETIME: ErrorCode.W_CELL_PARSE_FAILED,
    ErrorCode.E_CONVERSION_FAILED: ErrorCode.W_CELL_CONVERT_FAILED,
}


def compute_batch_size(
    total_rows: int,
    min_size: int = 100,
    max_size: int = 1000,
    target_batches: int = 10,
) -> int:
    """Return ``total_rows / target_batches`` clamped to ``[min_size, max_size]``."""
    return min(max_size, max(min_size, total_rows // target_batches))


@dataclass
class BatchTally:
    """Running counters for one worksheet (or a whole run, when summed)."""

    processed: int = 0
    errors: int = 0
    skipped: int = 0

    @property
    def rows_consumed(self) -> int:
        return self.processed + self.errors + self.skipped

    def add(self, other: BatchTally) -> None:
        self.processed += other.processed
        self.errors += other.errors
        self.skipped += other.skipped


@dataclass
class WarningCollector:
    """Collects per-cell warnings up to a cap, then records one truncation marker."""

    limit: int = 100
    items: list[ConversionError] = field(default_factory=list)
    dropped: int = 0
    unique_messages: set[str] = field(default_factory=set, repr=False)

    def add(self, warning: ConversionError) -> None:
        if len(self.items) < self.limit:
            self.items.append(warning)
            return
        self.dropped += 1

    def add_unique(self, warning: ConversionError) -> None:
        """Add *warning* unless one with the same message was added this way before."""
        if warning.message in self.unique_messages:
            return
        self.unique_messages.add(warning.message)
        self.add(warning)

    def extend(self, warnings: Iterable[ConversionError]) -> None:
        for warning in warnings:
            self.add(warning)

    def messages(self) -> list[str]:
        """Render warnings as display strings, including the truncation marker."""
        rendered = []
        for warning in self.items:
            location = ""
            if warning.sheet_name and warning.cell_ref:
                location = f"{warning.sheet_name}!{warning.cell_ref}: "
            rendered.append(f"{location}{warning.message}")
        if self.dropped:
            rendered.append(
                f"{ErrorCode.W_WARNINGS_TRUNCATED.value}: "
                f"{self.dropped} further warnings not shown"
            )
        return rendered


class BatchRowProcessor:
    """Convert the cells of one column, batch by batch.

    Parameters
    ----------
    cell_converter:
        Converts individual cell values.
    config:
        Supplies batch-size bounds, the number format written to converted
        cells, and the PII logging switch.
    """

    def __init__(
        self,
        cell_converter: CellConverter,
        config: TimezoneConverterConfig,
    ) -> None:
        self._cell_converter = cell_converter
        self._config = config

    def batch_size_for(self, total_rows: int) -> int:
        config = self._config
        return compute_batch_size(
            total_rows,
            min_size=config.min_batch_size,
            max_size=config.max_batch_size,
            target_batches=config.target_batches_per_sheet,
        )

    def process(
        self,
        rows: Iterable[Row],
        column_index: int,
        source_id: str,
        target_id: str,
        total_rows: int,
        sheet_name: str | None = None,
        warnings: WarningCollector | None = None,
        cancel: CancellationSignal | None = None,
        on_batch: Callable[[int], None] | None = None,
    ) -> BatchTally:
        """Convert column *column_index* (1-based) of every row in *rows*.

        Parameters
        ----------
        rows:
            Data rows in sheet order (header excluded).  Consumed lazily.
        total_rows:
            Number of rows *rows* will yield; sizes the batches.
        on_batch:
            Called after each batch with the number of rows consumed so far
            in this worksheet.

        Raises
        ------
        ConversionCancelled
            If *cancel* is set when the next batch is about to start.
        """
        batch_size = self.batch_size_for(total_rows)
        tally = BatchTally()
        iterator = iter(rows)
        batch_number = 0

        while True:
            batch = list(islice(iterator, batch_size))
            if not batch:
                break
            if cancel is not None and cancel.is_set():
                logger.info(
                    "Cancellation requested before batch %d of worksheet '%s'",
                    batch_number + 1,
                    sheet_name,
                )
                raise ConversionCancelled()

            self._process_batch(
                batch, column_index, source_id, target_id, tally, sheet_name, warnings
            )
            batch_number += 1

            if on_batch is not None:
                on_batch(tally.rows_consumed)

            if total_rows > self._config.large_sheet_log_threshold and batch_number % 10 == 1:
                logger.debug(
                    "Processed %d/%d rows in worksheet '%s'",
                    tally.rows_consumed,
                    total_rows,
                    sheet_name,
                )

        return tally

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _process_batch(
        self,
        batch: list[Row],
        column_index: int,
        source_id: str,
        target_id: str,
        tally: BatchTally,
        sheet_name: str | None,
        warnings: WarningCollector | None,
    ) -> None:
        layout_warnings: list[ConversionError] | None = [] if warnings is not None else None
        for row in batch:
            if column_index > len(row):
                tally.skipped += 1
                continue
            cell = row[column_index - 1]
            try:
                outcome = self._cell_converter.convert_cell(
                    cell.value,
                    source_id,
                    target_id,
                    data_type=cell.data_type,
                    warnings=layout_warnings,
                )
                if outcome.success:
                    self._write(cell, outcome)
                    tally.processed += 1
                elif outcome.is_error:
                    tally.errors += 1
                    self._record(cell.coordinate, outcome, sheet_name, warnings)
                else:
                    tally.skipped += 1
            except Exception as exc:
                tally.errors += 1
                logger.warning(
                    "Unexpected error processing cell %s in worksheet '%s': %s",
                    cell.coordinate,
                    sheet_name,
                    exc,
                )
                if warnings is not None:
                    warnings.add(
                        ConversionError(
                            code=ErrorCode.W_ROW_FAILED,
                            message=f"Unexpected error processing row: {exc}",
                            sheet_name=sheet_name,
                            cell_ref=cell.coordinate,
                            stage="process",
                            recoverable=True,
                        )
                    )

        if warnings is not None and layout_warnings:
            for warning in layout_warnings:
                warnings.add_unique(warning)

    def _write(self, cell, outcome: CellConversionOutcome) -> None:
        previous_format = cell.number_format
        cell.value = outcome.converted_value
        if not is_date_format(previous_format):
            cell.number_format = self._config.datetime_number_format

    def _record(
        self,
        coordinate: str,
        outcome: CellConversionOutcome,
        sheet_name: str | None,
        warnings: WarningCollector | None,
    ) -> None:
        if self._config.log_sample_data:
            logger.warning(
                "Error processing cell %s in worksheet '%s': %s",
                coordinate,
                sheet_name,
                outcome.error_message,
            )
        else:
            logger.warning(
                "Error processing cell %s in worksheet '%s': %s",
                coordinate,
                sheet_name,
                outcome.error_code.value if outcome.error_code else "unknown",
            )
        if warnings is None:
            return
        code = _WARNING_CODE_FOR.get(outcome.error_code, ErrorCode.W_CELL_PARSE_FAILED)
        warnings.add(
            ConversionError(
                code=code,
                message=outcome.error_message or "",
                sheet_name=sheet_name,
                cell_ref=coordinate,
                stage="process",
                recoverable=True,
            )
        )
