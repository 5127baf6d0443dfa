"""Thin openpyxl adapter: open workbook bytes, walk used rows, save to bytes.

A row is *used* when at least one of its cells holds a non-blank value; the
header row of a worksheet is its first used row.  Chartsheets are never
returned.
"""

from __future__ import annotations

import io
import logging
from collections.abc import Iterator

import openpyxl
from openpyxl.cell.cell import Cell
from openpyxl.workbook.workbook import Workbook
from openpyxl.worksheet.worksheet import Worksheet

logger = logging.getLogger("ingestkit_tz")

Row = tuple[Cell, ...]


def open_workbook(data: bytes) -> Workbook:
    """Load an editable workbook from raw ``.xlsx`` / ``.xlsm`` bytes.

    Raises whatever openpyxl raises for unreadable input; callers map that
    to ``E_FILE_CORRUPT``.
    """
    return openpyxl.load_workbook(io.BytesIO(data))


def save_workbook(workbook: Workbook) -> bytes:
    """Serialize *workbook* to ``.xlsx`` bytes."""
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def iter_worksheets(workbook: Workbook) -> Iterator[Worksheet]:
    """Yield data worksheets in workbook order (chartsheets excluded)."""
    for ws in workbook.worksheets:
        if isinstance(ws, Worksheet):
            yield ws


def is_blank(value: object) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def is_used(row: Row) -> bool:
    return any(not is_blank(cell.value) for cell in row)


def find_header_row(ws: Worksheet) -> Row | None:
    """Return the first used row of *ws*, or ``None`` for an empty sheet."""
    for row in ws.iter_rows():
        if is_used(row):
            return row
    return None


def header_texts(header: Row) -> list[str | None]:
    """Return trimmed header text per column; blank headers become ``None``."""
    texts: list[str | None] = []
    for cell in header:
        texts.append(None if is_blank(cell.value) else str(cell.value).strip())
    return texts


def iter_data_rows(ws: Worksheet, header: Row) -> Iterator[Row]:
    """Yield the used rows below *header*, in sheet order."""
    header_index = header[0].row
    for row in ws.iter_rows(min_row=header_index + 1):
        if is_used(row):
            yield row


def count_data_rows(ws: Worksheet, header: Row) -> int:
    """Count used rows below *header* (the header itself is excluded)."""
    return sum(1 for _ in iter_data_rows(ws, header))
