"""
Verbose timing diagnostics for cycle steps.

When enabled (``TIMING_DIAGNOSTICS=true``), every cycle step is wrapped in
``step_timer`` which measures:
- Wall-clock duration (perf_counter)
- Resident set size before/after the step (psutil)
- Process CPU percent over the step (psutil, best-effort)

and logs a ``step_timing`` event. When disabled the timer still records the
duration (it is cheap) but skips the psutil probes and the log line.

Usage:
    from bulk_worker.utils.diagnostics import step_timer

    with step_timer("bulk_insert", enabled=True, rows=1000) as timing:
        exchanger.bulk_insert(conn, batch)

    print(timing.duration_seconds, timing.rss_delta_bytes)
"""

from __future__ import annotations

import contextlib
import time
from dataclasses import dataclass, field
from typing import Any, Generator, Optional

import psutil

from bulk_worker.utils.logging import get_logger

log = get_logger(__name__)


@dataclass
class StepTiming:
    """
    Container for the measurements of one timed step.
    """

    label: str
    start_ts: float = field(default=0.0)
    end_ts: float = field(default=0.0)
    duration_seconds: float = field(default=0.0)
    rss_before_bytes: Optional[int] = field(default=None)
    rss_after_bytes: Optional[int] = field(default=None)
    cpu_percent: Optional[float] = field(default=None)
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def rss_delta_bytes(self) -> Optional[int]:
        if self.rss_before_bytes is None or self.rss_after_bytes is None:
            return None
        return self.rss_after_bytes - self.rss_before_bytes


@contextlib.contextmanager
def step_timer(
    label: str, enabled: bool = False, **extra: Any
) -> Generator[StepTiming, None, None]:
    """
    Time a block and, if ``enabled``, probe memory/CPU and log the result.

    Parameters
    ----------
    label : str
        Step name, e.g. "read", "bulk_insert", "export".
    enabled : bool
        Whether verbose diagnostics are on.
    **extra
        Additional fields attached to the timing and to the log event.

    Notes
    -----
    The timing is logged even when the block raises, so slow failures are
    visible; the exception itself propagates untouched.
    """
    timing = StepTiming(label=label, extra=dict(extra))
    process = psutil.Process() if enabled else None

    if process:
        timing.rss_before_bytes = process.memory_info().rss
        # CPU percent needs a priming call
        process.cpu_percent(interval=None)

    timing.start_ts = time.perf_counter()
    try:
        yield timing
    finally:
        timing.end_ts = time.perf_counter()
        timing.duration_seconds = timing.end_ts - timing.start_ts

        if process:
            timing.rss_after_bytes = process.memory_info().rss
            timing.cpu_percent = process.cpu_percent(interval=None)
            log.info(
                f"[TIMING] {label} took {timing.duration_seconds:.3f}s",
                extra={
                    "event": "step_timing",
                    "step": label,
                    "duration_seconds": round(timing.duration_seconds, 4),
                    "rss_delta_bytes": timing.rss_delta_bytes,
                    "cpu_percent": timing.cpu_percent,
                    **timing.extra,
                },
            )


__all__ = ["StepTiming", "step_timer"]
