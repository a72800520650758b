"""
Domain package for the bulk worker.

Exports the core domain models and the synthetic user generator.
Keep this package focused on data definitions and validation concerns.
"""

from bulk_worker.domain.generator import UserGenerator
from bulk_worker.domain.models import (
    EXPORT_FIELDS,
    CycleOutcome,
    RetryDecision,
    UserRecord,
)

__all__ = [
    "EXPORT_FIELDS",
    "CycleOutcome",
    "RetryDecision",
    "UserGenerator",
    "UserRecord",
]
