"""WorkbookOrchestrator -- drives one column conversion over a whole workbook.

The orchestrator owns the openpyxl workbook for the duration of one call and
walks it through these states::

    OPENED -> COUNTED -> PROCESSING -> SAVED -> DONE
       \\          \\           \\
        +-> ERROR   +-> CANCELLED +-> CANCELLED / ERROR

1. **Open** the workbook bytes (failure: ``E_FILE_CORRUPT``).
2. **Count** the data rows of every worksheet whose header row contains the
   target column.  A zero total fails with ``E_COLUMN_NOT_FOUND`` before
   any cell is touched.
3. **Process** those worksheets in workbook order through the
   :class:`~ingestkit_tz.batch.BatchRowProcessor`, reporting progress
   scaled into the caller's range.
4. **Save** the mutated workbook back to bytes.

Cancellation is polled at the start of every worksheet and every batch; a
cancelled run raises :class:`~ingestkit_tz.errors.ConversionCancelled` and
returns nothing.  The workbook is closed on every exit path.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum

from openpyxl.worksheet.worksheet import Worksheet

from ingestkit_tz.batch import BatchRowProcessor, BatchTally, WarningCollector
from ingestkit_tz.columns import (
    collect_available_columns,
    column_not_found_message,
    find_column,
)
from ingestkit_tz.config import TimezoneConverterConfig
from ingestkit_tz.errors import ConversionCancelled, ConversionException, ErrorCode
from ingestkit_tz.models import ConversionProgress, ConversionStatistics, WorkbookMetadata
from ingestkit_tz.protocols import CancellationSignal, ProgressCallback
from ingestkit_tz.workbook import (
    Row,
    count_data_rows,
    find_header_row,
    header_texts,
    iter_data_rows,
    iter_worksheets,
    open_workbook,
    save_workbook,
)

logger = logging.getLogger("ingestkit_tz")


def emit_progress(
    callback: ProgressCallback | None,
    processed: int,
    total: int,
    label: str,
) -> ConversionProgress:
    """Build a :class:`ConversionProgress` snapshot and hand its fields to *callback*."""
    snapshot = ConversionProgress(
        processed_items=processed, total_items=total, current_operation=label
    )
    logger.debug("Progress %.0f%%: %s", snapshot.percentage_complete, label)
    if callback is not None:
        callback(snapshot.processed_items, snapshot.total_items, label)
    return snapshot


class OrchestratorState(str, Enum):
    """Lifecycle states of one orchestrated conversion."""

    OPENED = "opened"
    COUNTED = "counted"
    PROCESSING = "processing"
    SAVED = "saved"
    DONE = "done"
    ERROR = "error"
    CANCELLED = "cancelled"


@dataclass
class SheetPlan:
    """A worksheet that contains the target column, sized by the count pass."""

    worksheet: Worksheet
    header: Row
    column_index: int
    row_count: int


class WorkbookOrchestrator:
    """Open, count, process, and save a workbook for one column conversion.

    Parameters
    ----------
    batch_processor:
        Converts the rows of one worksheet.
    config:
        Pipeline configuration (column suggestion limit, warning cap).
    """

    def __init__(
        self,
        batch_processor: BatchRowProcessor,
        config: TimezoneConverterConfig,
    ) -> None:
        self._batch_processor = batch_processor
        self._config = config
        self.state: OrchestratorState | None = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def process(
        self,
        data: bytes,
        column_name: str,
        source_id: str,
        target_id: str,
        cancel: CancellationSignal | None = None,
        progress: ProgressCallback | None = None,
        progress_range: tuple[int, int] = (0, 100),
    ) -> tuple[bytes, ConversionStatistics]:
        """Convert *column_name* in every worksheet of *data*.

        Parameters
        ----------
        progress_range:
            ``(low, high)`` percentages this phase occupies in the caller's
            overall progress; batch progress is mapped linearly into it.

        Returns
        -------
        tuple[bytes, ConversionStatistics]
            The saved workbook and the run's statistics.

        Raises
        ------
        ConversionException
            ``E_FILE_CORRUPT`` or ``E_COLUMN_NOT_FOUND``.
        ConversionCancelled
            If *cancel* is set at a worksheet or batch boundary.
        """
        start = time.monotonic()

        try:
            workbook = open_workbook(data)
        except Exception as exc:
            self._transition(OrchestratorState.ERROR)
            logger.error("Unable to open workbook: %s", exc)
            raise ConversionException(
                code=ErrorCode.E_FILE_CORRUPT,
                message=(
                    "Unable to open the Excel file. Please ensure it's a valid "
                    ".xlsx or .xlsm file."
                ),
                stage="open",
                recoverable=False,
            ) from exc
        self._transition(OrchestratorState.OPENED)

        try:
            plans = self._count(workbook, column_name)
            total_rows = sum(plan.row_count for plan in plans)
            if total_rows == 0:
                available = collect_available_columns(workbook)
                raise ConversionException(
                    code=ErrorCode.E_COLUMN_NOT_FOUND,
                    message=column_not_found_message(
                        column_name, available, self._config.max_column_suggestions
                    ),
                    stage="count",
                    recoverable=False,
                )
            self._transition(OrchestratorState.COUNTED)
            logger.info(
                "Found column '%s' in %d worksheet(s); %d data rows to process",
                column_name,
                len(plans),
                total_rows,
            )

            warnings = WarningCollector(limit=self._config.max_warnings)
            totals = BatchTally()
            worksheets_processed = 0
            low, high = progress_range

            self._transition(OrchestratorState.PROCESSING)
            for plan in plans:
                if cancel is not None and cancel.is_set():
                    logger.info(
                        "Cancellation requested before worksheet '%s'", plan.worksheet.title
                    )
                    raise ConversionCancelled()

                logger.debug(
                    "Found column %s at index %d in worksheet %s",
                    column_name,
                    plan.column_index,
                    plan.worksheet.title,
                )
                done_before = totals.rows_consumed

                def on_batch(consumed: int, _done_before: int = done_before) -> None:
                    if progress is None:
                        return
                    overall = min(_done_before + consumed, total_rows)
                    scaled = low + int(overall / total_rows * (high - low))
                    emit_progress(
                        progress, scaled, 100, f"Processed {overall:,} of {total_rows:,} rows"
                    )

                sheet_tally = self._batch_processor.process(
                    iter_data_rows(plan.worksheet, plan.header),
                    plan.column_index,
                    source_id,
                    target_id,
                    total_rows=plan.row_count,
                    sheet_name=plan.worksheet.title,
                    warnings=warnings,
                    cancel=cancel,
                    on_batch=on_batch,
                )
                totals.add(sheet_tally)
                worksheets_processed += 1

            logger.info(
                "Processing completed: %d cells processed, %d errors, %d skipped",
                totals.processed,
                totals.errors,
                totals.skipped,
            )

            emit_progress(progress, high, 100, "Saving file...")
            output = save_workbook(workbook)
            self._transition(OrchestratorState.SAVED)
        except ConversionCancelled:
            self._transition(OrchestratorState.CANCELLED)
            raise
        except Exception:
            self._transition(OrchestratorState.ERROR)
            raise
        finally:
            workbook.close()

        statistics = ConversionStatistics(
            total_rows_processed=total_rows,
            successful_conversions=totals.processed,
            error_count=totals.errors,
            skipped_count=totals.skipped,
            worksheets_processed=worksheets_processed,
            processing_time_seconds=time.monotonic() - start,
            warnings=tuple(warnings.messages()),
            column_name=column_name,
            source_timezone=source_id,
            target_timezone=target_id,
        )
        self._transition(OrchestratorState.DONE)
        return output, statistics

    def analyze(self, data: bytes) -> WorkbookMetadata:
        """Summarize *data*: header texts, worksheet count, and data rows.

        Raises
        ------
        ConversionException
            ``E_FILE_CORRUPT`` if openpyxl cannot read the workbook.
        """
        try:
            workbook = open_workbook(data)
        except Exception as exc:
            logger.error("Error analyzing Excel file: %s", exc)
            raise ConversionException(
                code=ErrorCode.E_FILE_CORRUPT,
                message=(
                    "Unable to analyze the Excel file. Please ensure it's a valid "
                    ".xlsx or .xlsm file."
                ),
                stage="analyze",
                recoverable=False,
            ) from exc

        try:
            worksheets = list(iter_worksheets(workbook))
            row_count = 0
            for ws in worksheets:
                header = find_header_row(ws)
                if header is not None:
                    row_count += count_data_rows(ws, header)
            return WorkbookMetadata(
                columns=collect_available_columns(workbook),
                worksheet_count=len(worksheets),
                row_count=row_count,
                file_size_bytes=len(data),
                is_valid=True,
            )
        finally:
            workbook.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _count(self, workbook, column_name: str) -> list[SheetPlan]:
        """Counting pass: locate the column and size each worksheet."""
        plans: list[SheetPlan] = []
        for ws in iter_worksheets(workbook):
            header = find_header_row(ws)
            if header is None:
                continue
            column_index = find_column(header_texts(header), column_name)
            if column_index is None:
                continue
            plans.append(
                SheetPlan(
                    worksheet=ws,
                    header=header,
                    column_index=column_index,
                    row_count=count_data_rows(ws, header),
                )
            )
        return plans

    def _transition(self, state: OrchestratorState) -> None:
        logger.debug("Orchestrator state: %s -> %s", self.state, state.value)
        self.state = state
