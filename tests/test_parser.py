"""Tests for DateTimeParser and dynamic layout generation."""

from __future__ import annotations

from datetime import datetime

import pytest

from ingestkit_tz.errors import ConversionError, ErrorCode
from ingestkit_tz.parser import DateTimeParser, generate_dynamic_layouts
from ingestkit_tz.patterns import COMMON_PATTERNS, PatternCache, PatternCompileError


@pytest.fixture()
def parser(pattern_cache: PatternCache) -> DateTimeParser:
    return DateTimeParser(pattern_cache)


@pytest.mark.unit
class TestGenerateDynamicLayouts:
    def test_iso_text_with_zulu(self) -> None:
        layouts = generate_dynamic_layouts("2024-01-15T10:30:00.123456Z")
        assert layouts == [
            "yyyy-MM-dd'T'HH:mm:ss.ffffffff'Z'",
            "yyyy-MM-dd'T'HH:mm:ss.ffffff'Z'",
            "yyyy-MM-dd'T'HH:mm:ss.fff'Z'",
        ]

    def test_dash_layouts_only_without_t(self) -> None:
        layouts = generate_dynamic_layouts("2024-1-5 9:00:00")
        assert layouts == ["yyyy-M-d H:mm:ss", "d-M-yyyy H:mm:ss", "M-d-yyyy H:mm:ss"]

    def test_slash_layouts(self) -> None:
        layouts = generate_dynamic_layouts("1/5/2024 9:00:00")
        assert "M/d/yyyy H:mm:ss" in layouts
        assert "yyyy/M/d H:mm:ss" in layouts

    def test_no_separators(self) -> None:
        assert generate_dynamic_layouts("20240115") == []


@pytest.mark.unit
class TestDateTimeParser:
    """Cached layouts, dynamic layouts, then the dateutil fallback."""

    def test_common_layout(self, parser: DateTimeParser) -> None:
        assert parser.parse("2024-01-15 10:30:00") == datetime(2024, 1, 15, 10, 30)

    def test_surrounding_whitespace_is_ignored(self, parser: DateTimeParser) -> None:
        assert parser.parse("  2024-01-15 10:30:00 ") == datetime(2024, 1, 15, 10, 30)

    def test_month_first_wins_when_both_valid(self, parser: DateTimeParser) -> None:
        assert parser.parse("03/04/2024 10:00:00") == datetime(2024, 3, 4, 10, 0)

    def test_day_first_when_month_out_of_range(self, parser: DateTimeParser) -> None:
        assert parser.parse("13/04/2024 10:00:00") == datetime(2024, 4, 13, 10, 0)

    def test_twelve_hour_text(self, parser: DateTimeParser) -> None:
        assert parser.parse("1/5/2024 3:04:05 PM") == datetime(2024, 1, 5, 15, 4, 5)

    def test_dynamic_layout_is_registered(
        self, parser: DateTimeParser, pattern_cache: PatternCache
    ) -> None:
        parsed = parser.parse("2024-01-15T10:30:00.123456")
        assert parsed == datetime(2024, 1, 15, 10, 30, 0, 123456)
        assert "yyyy-MM-dd'T'HH:mm:ss.ffffff" in pattern_cache
        assert len(pattern_cache) > len(COMMON_PATTERNS)

    @pytest.mark.parametrize("text", [None, "", "   "])
    def test_blank_returns_none_without_touching_cache(
        self, parser: DateTimeParser, pattern_cache: PatternCache, text: str | None
    ) -> None:
        assert parser.parse(text) is None
        assert len(pattern_cache) == len(COMMON_PATTERNS)

    def test_unparseable_returns_none(self, parser: DateTimeParser) -> None:
        assert parser.parse("not-a-date") is None

    def test_generic_fallback(self, parser: DateTimeParser) -> None:
        assert parser.parse("15 January 2024 10:30") == datetime(2024, 1, 15, 10, 30)

    @pytest.mark.parametrize("text", ["7", "2024", "May", "Monday", "1.5", "January 2024", "10:30"])
    def test_generic_fallback_needs_full_date(self, parser: DateTimeParser, text: str) -> None:
        assert parser.parse(text) is None

    def test_generic_fallback_day_first(self, pattern_cache: PatternCache) -> None:
        day_first = DateTimeParser(pattern_cache, dayfirst=True)
        assert day_first.parse("3.4.2024 10:00") == datetime(2024, 4, 3, 10, 0)

    def test_generic_fallback_disabled(self, pattern_cache: PatternCache) -> None:
        strict = DateTimeParser(pattern_cache, generic_fallback=False)
        assert strict.parse("15 January 2024 10:30") is None

    def test_embedded_offset_keeps_wall_clock(self, parser: DateTimeParser) -> None:
        parsed = parser.parse("2024-01-15T10:30:00+05:00")
        assert parsed == datetime(2024, 1, 15, 10, 30)
        assert parsed.tzinfo is None

    def test_rejected_dynamic_layout_reported_to_caller(self) -> None:
        cache = PatternCache([])
        cache.get_or_create("yyyy-M-d H:mm:ss")
        rejected = "d-M-yyyy H:mm:ss"
        cache._reject(rejected, PatternCompileError("broken"))
        parser = DateTimeParser(cache, generic_fallback=False)

        warnings: list[ConversionError] = []
        assert parser.parse("15-1-2024 9:00:00", warnings=warnings) is None
        assert [w.code for w in warnings] == [ErrorCode.W_PATTERN_INVALID]
        assert rejected in warnings[0].message
