"""
Bulk Worker - periodic, non-overlapping bulk user processing for PostgreSQL.

On a fixed interval the worker reads a bounded batch of active users,
synthesizes a larger batch of new ones, writes them with a set-based bulk
insert, renames them with a set-based bulk update, and exports the final
batch as CSV and JSON. The package provides:

- A scheduled executor with an atomic re-entrancy guard (ticks are dropped,
  never queued, while a cycle runs)
- A fixed-delay retry policy driven by a classified error taxonomy
- Interchangeable bulk exchangers (COPY + composite-array parameter, or
  chunked multi-row statements)
- Structured logging and optional per-step timing diagnostics
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from bulk_worker.config import Settings, get_settings
from bulk_worker.cycle import CycleRunner, derive_updated_batch, passthrough_handler
from bulk_worker.domain.models import CycleOutcome, RetryDecision, UserRecord
from bulk_worker.errors import (
    ConstraintError,
    SerializationError,
    TransientStoreError,
    UnclassifiedError,
    WorkerError,
)
from bulk_worker.exchangers import (
    BulkExchanger,
    ChunkedBulkExchanger,
    CopyBulkExchanger,
    create_exchanger,
)
from bulk_worker.executor import ExecutorState, ScheduledExecutor
from bulk_worker.retry import RetryPolicy, RetryResult
from bulk_worker.sinks import CsvExportSink, ExportSink, JsonExportSink
from bulk_worker.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Domain
    "CycleOutcome",
    "RetryDecision",
    "UserRecord",
    # Errors
    "WorkerError",
    "TransientStoreError",
    "ConstraintError",
    "SerializationError",
    "UnclassifiedError",
    # Engine
    "CycleRunner",
    "ExecutorState",
    "RetryPolicy",
    "RetryResult",
    "ScheduledExecutor",
    "derive_updated_batch",
    "passthrough_handler",
    # Bulk exchange
    "BulkExchanger",
    "ChunkedBulkExchanger",
    "CopyBulkExchanger",
    "create_exchanger",
    # Export
    "CsvExportSink",
    "ExportSink",
    "JsonExportSink",
    # Logging
    "configure_logging",
    "get_logger",
]
