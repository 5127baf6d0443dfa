"""ingestkit-tz -- timezone conversion of datetime columns in Excel workbooks.

Public API exports for the router, models, enums, errors, configuration,
and collaborator protocols.
"""

from ingestkit_tz.batch import BatchRowProcessor, BatchTally, compute_batch_size
from ingestkit_tz.cells import CellConverter, classify_cell
from ingestkit_tz.columns import find_column
from ingestkit_tz.config import TimezoneConverterConfig
from ingestkit_tz.converter import TimeZoneConverter
from ingestkit_tz.errors import (
    ConversionCancelled,
    ConversionError,
    ConversionException,
    ErrorCode,
)
from ingestkit_tz.models import (
    CellConversionOutcome,
    CellKind,
    ConversionProgress,
    ConversionRequest,
    ConversionStatistics,
    ConversionStatus,
    FileConversionResult,
    TimeZoneDetails,
    ValueConversionResult,
    WorkbookMetadata,
)
from ingestkit_tz.orchestrator import OrchestratorState, WorkbookOrchestrator
from ingestkit_tz.parser import DateTimeParser
from ingestkit_tz.patterns import (
    COMMON_PATTERNS,
    CompiledPattern,
    PatternCache,
    PatternCompileError,
    compile_pattern,
)
from ingestkit_tz.protocols import CancellationSignal, ProgressCallback, TimeZoneProvider
from ingestkit_tz.router import TimezoneConversionRouter, create_default_router
from ingestkit_tz.security import RequestValidator

__all__ = [
    # Router
    "TimezoneConversionRouter",
    "create_default_router",
    # Enums
    "CellKind",
    "ConversionStatus",
    "OrchestratorState",
    # Core models
    "ConversionRequest",
    "CellConversionOutcome",
    "ConversionProgress",
    "ConversionStatistics",
    "FileConversionResult",
    "ValueConversionResult",
    "WorkbookMetadata",
    "TimeZoneDetails",
    # Patterns and parsing
    "COMMON_PATTERNS",
    "CompiledPattern",
    "PatternCache",
    "PatternCompileError",
    "compile_pattern",
    "DateTimeParser",
    # Conversion pipeline
    "TimeZoneConverter",
    "CellConverter",
    "classify_cell",
    "find_column",
    "BatchRowProcessor",
    "BatchTally",
    "compute_batch_size",
    "WorkbookOrchestrator",
    "RequestValidator",
    # Errors
    "ErrorCode",
    "ConversionError",
    "ConversionException",
    "ConversionCancelled",
    # Config
    "TimezoneConverterConfig",
    # Protocols
    "TimeZoneProvider",
    "CancellationSignal",
    "ProgressCallback",
]
