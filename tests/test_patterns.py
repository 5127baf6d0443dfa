"""Tests for layout compilation and the shared PatternCache."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime

import pytest

from ingestkit_tz.errors import ErrorCode
from ingestkit_tz.patterns import (
    COMMON_PATTERNS,
    PatternCache,
    PatternCompileError,
    compile_pattern,
)


@pytest.mark.unit
class TestCompilePattern:
    """compile_pattern() grammar and CompiledPattern.parse/format."""

    @pytest.mark.parametrize("layout", COMMON_PATTERNS)
    def test_common_layout_reproduces_formatted_value(self, layout: str) -> None:
        value = datetime(2024, 7, 9, 14, 5, 6)
        pattern = compile_pattern(layout)
        assert pattern.parse(pattern.format(value)) == value

    def test_fraction_digits_truncated_to_microseconds(self) -> None:
        pattern = compile_pattern("yyyy-MM-dd'T'HH:mm:ss.ffffffff")
        parsed = pattern.parse("2024-01-15T10:30:00.12345678")
        assert parsed == datetime(2024, 1, 15, 10, 30, 0, 123456)

    def test_milliseconds_with_zulu_suffix(self) -> None:
        pattern = compile_pattern("yyyy-MM-dd'T'HH:mm:ss.fff'Z'")
        assert pattern.parse("2024-01-15T10:30:00.250Z") == datetime(
            2024, 1, 15, 10, 30, 0, 250000
        )

    def test_twelve_hour_clock(self) -> None:
        pattern = compile_pattern("M/d/yyyy h:mm:ss tt")
        assert pattern.parse("1/5/2024 12:00:00 AM") == datetime(2024, 1, 5, 0, 0, 0)
        assert pattern.parse("1/5/2024 12:00:00 pm") == datetime(2024, 1, 5, 12, 0, 0)
        assert pattern.parse("1/5/2024 3:04:05 PM") == datetime(2024, 1, 5, 15, 4, 5)

    def test_two_digit_fields_reject_single_digits(self) -> None:
        pattern = compile_pattern("MM/dd/yyyy HH:mm:ss")
        assert pattern.parse("1/5/2024 10:00:00") is None

    def test_out_of_range_value_is_a_non_match(self) -> None:
        pattern = compile_pattern("yyyy-MM-dd HH:mm:ss")
        assert pattern.parse("2024-02-30 10:00:00") is None
        assert pattern.parse("2024-13-01 10:00:00") is None

    def test_full_match_required(self) -> None:
        pattern = compile_pattern("yyyy-MM-dd HH:mm:ss")
        assert pattern.parse("2024-01-15 10:30:00 extra") is None

    def test_backslash_escapes_a_letter(self) -> None:
        pattern = compile_pattern("yyyy-MM-dd\\THH:mm:ss")
        assert pattern.parse("2024-01-15T10:30:00") == datetime(2024, 1, 15, 10, 30)

    @pytest.mark.parametrize(
        "layout",
        [
            "",
            "yyyy-MM-ddTHH:mm:ss",  # unquoted letter
            "MM/dd HH:mm:ss",  # no year
            "yy-MM-dd",  # unsupported width
            "yyyy-MM-dd hh:mm:ss",  # 12-hour without tt
            "yyyy-MM-dd HH:mm:ss tt",  # tt without 12-hour field
            "yyyy-MM-dd'T",  # unterminated quote
            "yyyy-MM-dd MM",  # repeated field
        ],
    )
    def test_invalid_layouts_raise(self, layout: str) -> None:
        with pytest.raises(PatternCompileError):
            compile_pattern(layout)


@pytest.mark.unit
class TestPatternCache:
    """Seeding, rejection bookkeeping, and idempotent insertion."""

    def test_seeded_with_common_layouts(self, pattern_cache: PatternCache) -> None:
        assert len(pattern_cache) == len(COMMON_PATTERNS)
        assert [p.layout for p in pattern_cache.snapshot()] == list(COMMON_PATTERNS)
        assert pattern_cache.warnings == []

    def test_get_or_create_returns_cached_instance(self, pattern_cache: PatternCache) -> None:
        first = pattern_cache.get_or_create("yyyy-M-d H:mm:ss")
        second = pattern_cache.get_or_create("yyyy-M-d H:mm:ss")
        assert first is not None
        assert first is second
        assert "yyyy-M-d H:mm:ss" in pattern_cache

    def test_invalid_layout_warns_once(self, pattern_cache: PatternCache) -> None:
        assert pattern_cache.get_or_create("qqqq") is None
        assert pattern_cache.get_or_create("qqqq") is None
        assert pattern_cache.is_rejected("qqqq")
        assert len(pattern_cache.warnings) == 1
        assert pattern_cache.warnings[0].code == ErrorCode.W_PATTERN_INVALID
        assert len(pattern_cache) == len(COMMON_PATTERNS)

    def test_rejection_reported_to_each_caller(self, pattern_cache: PatternCache) -> None:
        first_run: list = []
        second_run: list = []
        assert pattern_cache.get_or_create("qqqq", warnings=first_run) is None
        assert pattern_cache.get_or_create("qqqq", warnings=second_run) is None
        assert [w.code for w in first_run] == [ErrorCode.W_PATTERN_INVALID]
        assert second_run == first_run
        assert len(pattern_cache.warnings) == 1

    def test_valid_layout_adds_no_caller_warning(self, pattern_cache: PatternCache) -> None:
        sink: list = []
        assert pattern_cache.get_or_create("d-M-yyyy H:mm:ss", warnings=sink) is not None
        assert sink == []

    def test_invalid_seed_layout_is_skipped(self) -> None:
        cache = PatternCache(["yyyy-MM-dd HH:mm:ss", "not a layout"])
        assert len(cache) == 1
        assert cache.is_rejected("not a layout")

    def test_concurrent_insert_is_idempotent(self, pattern_cache: PatternCache) -> None:
        layout = "d-M-yyyy H:mm:ss"
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: pattern_cache.get_or_create(layout), range(32)))
        assert all(result is results[0] for result in results)
        layouts = [p.layout for p in pattern_cache.snapshot()]
        assert layouts.count(layout) == 1
