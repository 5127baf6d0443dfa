"""Shared test fixtures for ingestkit-tz tests.

Provides a default config, a fresh pattern cache, the pytz provider, a
router wired to them, and ``.xlsx`` byte generators built with openpyxl.
"""

from __future__ import annotations

import io
from collections.abc import Callable
from datetime import datetime, timedelta

import openpyxl
import pytest

from ingestkit_tz.backends import PytzZoneProvider
from ingestkit_tz.config import TimezoneConverterConfig
from ingestkit_tz.patterns import PatternCache
from ingestkit_tz.router import TimezoneConversionRouter

XlsxBuilder = Callable[[dict[str, list[list[object]]]], bytes]

LARGE_ROW_COUNT = 10_000
MALFORMED_EVERY = 50  # 2 % of rows


def build_xlsx(sheets: dict[str, list[list[object]]]) -> bytes:
    """Serialize ``{sheet title: rows}`` to ``.xlsx`` bytes."""
    wb = openpyxl.Workbook()
    wb.remove(wb.active)
    for title, rows in sheets.items():
        ws = wb.create_sheet(title)
        for row in rows:
            ws.append(row)
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def read_sheet(data: bytes, title: str) -> list[tuple[object, ...]]:
    """Return every row of worksheet *title* as a tuple of values."""
    wb = openpyxl.load_workbook(io.BytesIO(data))
    try:
        return [tuple(row) for row in wb[title].iter_rows(values_only=True)]
    finally:
        wb.close()


# ---------------------------------------------------------------------------
# Pipeline fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_config() -> TimezoneConverterConfig:
    """Return a TimezoneConverterConfig with all defaults."""
    return TimezoneConverterConfig()


@pytest.fixture()
def pattern_cache() -> PatternCache:
    """Return a fresh cache seeded with the common layouts."""
    return PatternCache()


@pytest.fixture(scope="session")
def provider() -> PytzZoneProvider:
    return PytzZoneProvider()


@pytest.fixture()
def router(
    provider: PytzZoneProvider, sample_config: TimezoneConverterConfig
) -> TimezoneConversionRouter:
    """Return a router with its own pattern cache."""
    return TimezoneConversionRouter(provider=provider, config=sample_config)


# ---------------------------------------------------------------------------
# .xlsx generators
# ---------------------------------------------------------------------------


@pytest.fixture()
def make_xlsx() -> XlsxBuilder:
    return build_xlsx


@pytest.fixture()
def events_xlsx() -> bytes:
    """One sheet of mixed cell kinds under a ``Local Time`` header."""
    return build_xlsx(
        {
            "Events": [
                ["Id", "Local Time", "Notes"],
                [1, datetime(2024, 1, 15, 9, 0, 0), "native datetime"],
                [2, "2024-01-15 10:30:00", "text, common layout"],
                [3, "not-a-date", "malformed"],
                [4, 42, "number"],
                [5, None, "empty cell"],
                [6, True, "boolean"],
            ]
        }
    )


@pytest.fixture(scope="session")
def large_xlsx() -> bytes:
    """10,000 data rows; every 50th timestamp cell is malformed text."""
    start = datetime(2024, 1, 1, 0, 0, 0)
    rows: list[list[object]] = [["Row", "Timestamp"]]
    for i in range(1, LARGE_ROW_COUNT + 1):
        if i % MALFORMED_EVERY == 0:
            rows.append([i, "not-a-date"])
        else:
            rows.append([i, start + timedelta(minutes=i)])
    return build_xlsx({"Data": rows})


@pytest.fixture()
def read_xlsx() -> Callable[[bytes, str], list[tuple[object, ...]]]:
    return read_sheet
