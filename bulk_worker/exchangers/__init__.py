"""
Bulk exchangers package for the bulk worker.

This module re-exports the abstract interfaces, the concrete exchanger classes
and the BULK_MODE registry so downstream code can import from
`bulk_worker.exchangers` directly.
"""

from bulk_worker.exchangers.abstract import (
    INSERT_COLUMNS,
    UPDATE_COLUMNS,
    AbstractBulkExchanger,
    BulkExchanger,
)
from bulk_worker.exchangers.chunked import ChunkedBulkExchanger
from bulk_worker.exchangers.copy import CopyBulkExchanger
from bulk_worker.exchangers.registry import available_exchangers, create_exchanger

__all__ = [
    # Abstracts
    "AbstractBulkExchanger",
    "BulkExchanger",
    "INSERT_COLUMNS",
    "UPDATE_COLUMNS",
    # Concrete exchangers
    "ChunkedBulkExchanger",
    "CopyBulkExchanger",
    # Registry
    "available_exchangers",
    "create_exchanger",
]
