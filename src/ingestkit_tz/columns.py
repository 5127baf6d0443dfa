"""Locate the target column in a worksheet header row."""

from __future__ import annotations

from collections.abc import Sequence

from openpyxl.workbook.workbook import Workbook

from ingestkit_tz.workbook import find_header_row, header_texts, iter_worksheets


def find_column(headers: Sequence[str | None], name: str) -> int | None:
    """Return the 1-based index of the header matching *name*, or ``None``.

    An exact, case-insensitive match of the trimmed texts wins; only when no
    header matches exactly is a case-insensitive substring match tried
    (``"Time"`` finds ``"Local Time"``).  Within each step the first
    matching header in row order wins.  Blank headers never match.
    """
    wanted = name.strip().casefold()
    if not wanted:
        return None

    normalized = [
        None if header is None or not header.strip() else header.strip().casefold()
        for header in headers
    ]

    for index, header in enumerate(normalized, start=1):
        if header is not None and header == wanted:
            return index

    for index, header in enumerate(normalized, start=1):
        if header is not None and wanted in header:
            return index

    return None


def collect_available_columns(workbook: Workbook) -> list[str]:
    """Return the distinct header texts of every worksheet, sorted."""
    columns: set[str] = set()
    for ws in iter_worksheets(workbook):
        header = find_header_row(ws)
        if header is None:
            continue
        columns.update(text for text in header_texts(header) if text)
    return sorted(columns)


def column_not_found_message(name: str, available: Sequence[str], limit: int = 10) -> str:
    """Build the user-facing message for a column missing from every sheet."""
    shown = ", ".join(available[:limit]) if available else "(none)"
    return f"Column '{name}' not found in any worksheet. Available columns: {shown}"
