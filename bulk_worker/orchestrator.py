"""
Wiring for the bulk worker: settings -> store, exchanger, sinks, runner, executor.

Usage (example from CLI):
    from bulk_worker.orchestrator import run_once, serve

    outcome = run_once()            # one retried cycle, then exit
    serve(stop_event)               # tick until stop_event is set

Both entry points own the store lifecycle: the pool is opened before the first
cycle and closed on every exit path, after any in-flight cycle has finished.
"""

from __future__ import annotations

import functools
import threading
from typing import Optional, Sequence

from bulk_worker.config import Settings, get_settings
from bulk_worker.cycle import CycleRunner, RecordHandler, passthrough_handler
from bulk_worker.domain.models import CycleOutcome
from bulk_worker.exchangers.registry import create_exchanger
from bulk_worker.executor import OutcomeObserver, ScheduledExecutor
from bulk_worker.infrastructure.db_factory import UserStore
from bulk_worker.retry import RetryPolicy
from bulk_worker.sinks import ExportSink, default_sinks
from bulk_worker.utils.logging import get_logger

log = get_logger(__name__)


def build_executor(
    store: UserStore,
    settings: Optional[Settings] = None,
    sinks: Optional[Sequence[ExportSink]] = None,
    handler: RecordHandler = passthrough_handler,
    on_outcome: Optional[OutcomeObserver] = None,
) -> ScheduledExecutor:
    """
    Assemble a ScheduledExecutor whose cycle runs against `store`.

    Parameters
    ----------
    store : UserStore
        Store handle; the caller owns its lifecycle.
    settings : Settings, optional
        Defaults to `get_settings()`.
    sinks : sequence of ExportSink, optional
        Defaults to CSV + JSON at the configured paths.
    handler : callable
        Per-record hook for the records read each cycle.
    on_outcome : callable, optional
        Observer for terminal cycle outcomes.
    """
    settings = settings or get_settings()
    exchanger = create_exchanger(settings=settings)
    runner = CycleRunner.from_settings(settings, exchanger=exchanger, handler=handler)
    export_sinks = list(sinks) if sinks is not None else default_sinks(settings)
    log.info(
        "Worker assembled",
        extra={
            "exchanger": exchanger.name,
            "sinks": [getattr(s, "name", type(s).__name__) for s in export_sinks],
            "period_seconds": settings.cycle_period_seconds,
            "batch_size": settings.batch_size,
            "read_limit": settings.read_limit,
        },
    )
    return ScheduledExecutor(
        functools.partial(runner.run_once, store, export_sinks),
        period_seconds=settings.cycle_period_seconds,
        retry_policy=RetryPolicy.from_settings(settings),
        on_outcome=on_outcome,
        name="user-cycle",
    )


def run_once(
    settings: Optional[Settings] = None,
    store: Optional[UserStore] = None,
    sinks: Optional[Sequence[ExportSink]] = None,
) -> CycleOutcome:
    """Run exactly one retried cycle and return its terminal outcome."""
    settings = settings or get_settings()
    owned = store is None
    store = store or UserStore(settings)
    try:
        executor = build_executor(store, settings=settings, sinks=sinks)
        outcome = executor.run_cycle()
        if outcome is None:
            raise RuntimeError("a fresh executor refused to run a cycle")
        return outcome
    finally:
        if owned:
            store.close()


def serve(
    stop_event: threading.Event,
    settings: Optional[Settings] = None,
    store: Optional[UserStore] = None,
    sinks: Optional[Sequence[ExportSink]] = None,
) -> None:
    """
    Run the periodic worker until `stop_event` is set, then shut down gracefully.
    """
    settings = settings or get_settings()
    owned = store is None
    store = store or UserStore(settings)
    executor = build_executor(store, settings=settings, sinks=sinks)
    try:
        executor.start()
        stop_event.wait()
        log.info("Shutdown requested; letting the current cycle finish")
    finally:
        executor.stop(wait=True)
        if owned:
            store.close()


__all__ = ["build_executor", "run_once", "serve"]
