"""
Utilities package for the bulk worker.

Exports shared helpers for logging and timing diagnostics.
Keep this package lightweight and free of domain-specific logic.
"""

from bulk_worker.utils.diagnostics import StepTiming, step_timer
from bulk_worker.utils.logging import configure_logging, get_logger

__all__ = [
    "configure_logging",
    "get_logger",
    "StepTiming",
    "step_timer",
]
