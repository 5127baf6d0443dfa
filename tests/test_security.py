"""Tests for RequestValidator: file checks, column checks, and zone suggestions."""

from __future__ import annotations

import pytest

from ingestkit_tz.backends import PytzZoneProvider
from ingestkit_tz.config import TimezoneConverterConfig
from ingestkit_tz.errors import ErrorCode
from ingestkit_tz.models import ConversionRequest
from ingestkit_tz.security import RequestValidator


@pytest.fixture()
def validator(
    sample_config: TimezoneConverterConfig, provider: PytzZoneProvider
) -> RequestValidator:
    return RequestValidator(sample_config, provider)


def _request(**overrides: object) -> ConversionRequest:
    fields: dict[str, object] = {
        "file_bytes": b"PK\x03\x04" + b"\x00" * 32,
        "column_name": "Local Time",
        "source_timezone": "America/New_York",
        "target_timezone": "UTC",
    }
    fields.update(overrides)
    return ConversionRequest(**fields)  # type: ignore[arg-type]


@pytest.mark.unit
class TestScanFile:
    @pytest.mark.parametrize("data", [None, b""])
    def test_missing(self, validator: RequestValidator, data: bytes | None) -> None:
        errors = validator.scan_file(data, 1024)
        assert [e.code for e in errors] == [ErrorCode.E_FILE_MISSING]

    def test_too_large(self, validator: RequestValidator) -> None:
        data = b"PK\x03\x04" + b"\x00" * (2 * 1024 * 1024)
        errors = validator.scan_file(data, 1024 * 1024)
        assert [e.code for e in errors] == [ErrorCode.E_FILE_TOO_LARGE]
        assert "maximum allowed size of 1 MB" in errors[0].message

    def test_too_small_for_magic(self, validator: RequestValidator) -> None:
        errors = validator.scan_file(b"PK", 1024)
        assert [e.code for e in errors] == [ErrorCode.E_FILE_FORMAT]
        assert "too small" in errors[0].message

    def test_non_zip_bytes_rejected(self, validator: RequestValidator) -> None:
        errors = validator.scan_file(b"%PDF-1.7 not a workbook", 1024)
        assert [e.code for e in errors] == [ErrorCode.E_FILE_FORMAT]
        assert errors[0].stage == "security"
        assert not errors[0].recoverable

    def test_zip_header_passes(self, validator: RequestValidator) -> None:
        assert validator.scan_file(b"PK\x03\x04rest", 1024) == []


@pytest.mark.unit
class TestTimezoneChecks:
    def test_is_valid_timezone(self, validator: RequestValidator) -> None:
        assert validator.is_valid_timezone("Europe/London")
        assert not validator.is_valid_timezone("europe/london")
        assert not validator.is_valid_timezone("   ")
        assert not validator.is_valid_timezone(None)

    def test_suggestions_are_substring_matches(self, validator: RequestValidator) -> None:
        assert "America/New_York" in validator.timezone_suggestions("new_york")

    def test_suggestions_capped(self, validator: RequestValidator) -> None:
        assert len(validator.timezone_suggestions("America")) == 5

    def test_fallback_suggestions(self, validator: RequestValidator) -> None:
        assert validator.timezone_suggestions("Mars/Olympus_Mons") == [
            "UTC",
            "America/New_York",
            "Europe/London",
            "Asia/Tokyo",
        ]

    def test_invalid_source_message(self, validator: RequestValidator) -> None:
        errors = validator.check_timezones("New_York", "UTC")
        assert errors[0].code == ErrorCode.E_TIMEZONE_INVALID
        assert errors[0].message.startswith("Invalid source time zone 'New_York'. Did you mean: ")
        assert "America/New_York" in errors[0].message
        assert errors[0].message.endswith("?")

    def test_invalid_target_message(self, validator: RequestValidator) -> None:
        errors = validator.check_timezones("UTC", "Mars/Olympus_Mons")
        assert errors[0].message == (
            "Invalid target time zone 'Mars/Olympus_Mons'. "
            "Did you mean: UTC, America/New_York, Europe/London, Asia/Tokyo?"
        )

    def test_required_checked_before_validity(self, validator: RequestValidator) -> None:
        errors = validator.check_timezones("Not/AZone", "")
        assert errors[0].code == ErrorCode.E_TIMEZONE_REQUIRED
        assert errors[0].message == "Target time zone is required."


@pytest.mark.unit
class TestValidateRequest:
    def test_valid_request(self, validator: RequestValidator) -> None:
        assert validator.validate(_request()) == []

    def test_file_checked_first(self, validator: RequestValidator) -> None:
        errors = validator.validate(_request(file_bytes=b"nope", column_name=""))
        assert errors[0].code == ErrorCode.E_FILE_FORMAT

    def test_column_required(self, validator: RequestValidator) -> None:
        errors = validator.validate(_request(column_name="  "))
        assert errors[0].code == ErrorCode.E_COLUMN_REQUIRED

    def test_source_required(self, validator: RequestValidator) -> None:
        errors = validator.validate(_request(source_timezone=None))
        assert errors[0].code == ErrorCode.E_TIMEZONE_REQUIRED
        assert errors[0].message == "Source time zone is required."

    def test_request_size_limit(self, validator: RequestValidator) -> None:
        errors = validator.validate(_request(max_file_size_bytes=8))
        assert errors[0].code == ErrorCode.E_FILE_TOO_LARGE
