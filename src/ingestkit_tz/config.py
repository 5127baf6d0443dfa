"""Configuration model for the ingestkit-tz pipeline.

Provides ``TimezoneConverterConfig`` with all tunable parameters and sensible
defaults.  Supports loading overrides from YAML or JSON files via the
``from_file()`` classmethod.
"""

from __future__ import annotations

import json
import pathlib

from pydantic import BaseModel, model_validator

DEFAULT_MAX_FILE_SIZE_BYTES = 50 * 1024 * 1024


class TimezoneConverterConfig(BaseModel):
    """All tunable parameters with sensible defaults.

    Override individual values via constructor kwargs or load a complete
    config from a file with ``TimezoneConverterConfig.from_file(path)``.
    """

    # --- Identity ---
    parser_version: str = "ingestkit_tz:1.0.0"

    # --- Validation ---
    max_file_size_bytes: int = DEFAULT_MAX_FILE_SIZE_BYTES
    max_column_suggestions: int = 10
    max_timezone_suggestions: int = 5
    fallback_timezones: list[str] = [
        "UTC",
        "America/New_York",
        "Europe/London",
        "Asia/Tokyo",
    ]

    # --- Batching ---
    min_batch_size: int = 100
    max_batch_size: int = 1000
    target_batches_per_sheet: int = 10

    # --- Progress ---
    processing_progress_low: int = 20
    processing_progress_high: int = 95

    # --- Parsing ---
    generic_fallback_parse: bool = True
    dayfirst_fallback: bool = False

    # --- Output ---
    datetime_number_format: str = "yyyy-mm-dd h:mm:ss"
    max_warnings: int = 100

    # --- Logging / PII safety ---
    large_sheet_log_threshold: int = 5000
    log_sample_data: bool = False

    @model_validator(mode="after")
    def _validate_bounds(self) -> TimezoneConverterConfig:
        """Reject batch and progress bounds that cannot be satisfied."""
        if self.min_batch_size < 1:
            raise ValueError("min_batch_size must be at least 1")
        if self.min_batch_size > self.max_batch_size:
            raise ValueError(
                f"min_batch_size ({self.min_batch_size}) must not exceed "
                f"max_batch_size ({self.max_batch_size})"
            )
        if self.target_batches_per_sheet < 1:
            raise ValueError("target_batches_per_sheet must be at least 1")
        if not (
            0 <= self.processing_progress_low
            < self.processing_progress_high
            <= 100
        ):
            raise ValueError(
                "processing progress range must satisfy "
                "0 <= processing_progress_low < processing_progress_high <= 100"
            )
        if self.max_file_size_bytes < 1:
            raise ValueError("max_file_size_bytes must be positive")
        return self

    @classmethod
    def from_file(cls, path: str) -> TimezoneConverterConfig:
        """Load configuration from a YAML or JSON file.

        File format is detected by extension: ``.yaml`` / ``.yml`` for YAML,
        ``.json`` for JSON.  Any keys present in the file override the
        corresponding defaults; keys not present retain their defaults.

        Args:
            path: Filesystem path to the configuration file.

        Returns:
            A fully-populated ``TimezoneConverterConfig`` instance.

        Raises:
            FileNotFoundError: If *path* does not exist.
            ValueError: If the file extension is not recognized.
        """
        file_path = pathlib.Path(path)
        if not file_path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        suffix = file_path.suffix.lower()

        if suffix in (".yaml", ".yml"):
            import yaml

            with open(file_path) as fh:
                data = yaml.safe_load(fh)
        elif suffix == ".json":
            with open(file_path) as fh:
                data = json.load(fh)
        else:
            raise ValueError(
                f"Unsupported config file extension '{suffix}'. "
                "Use .yaml, .yml, or .json."
            )

        if data is None:
            data = {}

        return cls(**data)
