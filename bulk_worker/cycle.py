"""
One cycle of work: read -> handle -> synthesize -> insert -> update -> export.

The runner holds no state between cycles and performs no retries itself; the
executor wraps `run_once` in a RetryPolicy. Store errors therefore propagate
(already classified) while handler and export failures are absorbed and
reported in the returned CycleOutcome.
"""

from __future__ import annotations

import time
from typing import Callable, List, Optional, Sequence

from bulk_worker.config import Settings
from bulk_worker.domain.generator import UserGenerator
from bulk_worker.domain.models import CycleOutcome, UserRecord
from bulk_worker.errors import SerializationError
from bulk_worker.exchangers.abstract import BulkExchanger
from bulk_worker.infrastructure.db_factory import UserStore
from bulk_worker.infrastructure.users import read_active_users
from bulk_worker.sinks import ExportSink
from bulk_worker.utils.diagnostics import step_timer
from bulk_worker.utils.logging import get_logger

log = get_logger(__name__)

RecordHandler = Callable[[UserRecord], None]


def passthrough_handler(record: UserRecord) -> None:
    """Default per-record hook: does nothing."""
    del record


def derive_updated_batch(batch: Sequence[UserRecord], suffix: str) -> List[UserRecord]:
    """Renamed copies of every record; the only place the update view is built."""
    return [record.renamed(suffix) for record in batch]


class CycleRunner:
    """
    Executes a single cycle against a store and a list of export sinks.

    Parameters
    ----------
    exchanger : BulkExchanger
        Set-based insert/update implementation.
    generator : UserGenerator, optional
        Source of synthesized records.
    handler : callable, optional
        Per-record hook applied to every record read. Failures are logged and
        counted, never fatal.
    read_limit : int
        Maximum active users read per cycle.
    batch_size : int
        Number of records synthesized per cycle.
    name_suffix : str
        Appended to every synthesized name before the bulk update.
    timing_diagnostics : bool
        Log per-step timings (see `utils.diagnostics`).
    """

    def __init__(
        self,
        exchanger: BulkExchanger,
        generator: Optional[UserGenerator] = None,
        handler: RecordHandler = passthrough_handler,
        read_limit: int = 100,
        batch_size: int = 1000,
        name_suffix: str = " Updated",
        timing_diagnostics: bool = False,
    ) -> None:
        self.exchanger = exchanger
        self.generator = generator or UserGenerator()
        self.handler = handler
        self.read_limit = read_limit
        self.batch_size = batch_size
        self.name_suffix = name_suffix
        self.timing_diagnostics = timing_diagnostics

    @classmethod
    def from_settings(
        cls, settings: Settings, exchanger: BulkExchanger, **kwargs
    ) -> "CycleRunner":
        return cls(
            exchanger=exchanger,
            read_limit=settings.read_limit,
            batch_size=settings.batch_size,
            name_suffix=settings.name_suffix,
            timing_diagnostics=settings.timing_diagnostics,
            **kwargs,
        )

    def _step(self, label: str, **extra):
        return step_timer(label, enabled=self.timing_diagnostics, **extra)

    def _handle_all(self, records: Sequence[UserRecord]) -> int:
        failures = 0
        for record in records:
            try:
                self.handler(record)
            except Exception as exc:  # noqa: BLE001 - one bad record must not stop the cycle
                failures += 1
                log.warning(
                    "Record handler failed; skipping record",
                    extra={"event": "handler_failed", "user_id": str(record.id), "error": str(exc)},
                    exc_info=True,
                )
        return failures

    def _export(self, sinks: Sequence[ExportSink], batch: Sequence[UserRecord], outcome: CycleOutcome) -> None:
        delivered = False
        for sink in sinks:
            sink_name = getattr(sink, "name", type(sink).__name__)
            try:
                with self._step("export", sink=sink_name, rows=len(batch)):
                    sink.write(batch)
                delivered = True
            except Exception as exc:  # noqa: BLE001 - sinks are isolated from each other
                error = exc if isinstance(exc, SerializationError) else SerializationError(str(exc))
                outcome.export_failures[sink_name] = str(error)
                log.warning(
                    f"[EXPORT FAILED] {sink_name}",
                    extra={"event": "export_failed", "sink": sink_name, "error": str(error)},
                    exc_info=exc,
                )
        outcome.rows_exported = len(batch) if delivered else 0

    def run_once(self, store: UserStore, sinks: Sequence[ExportSink]) -> CycleOutcome:
        """
        Run one full cycle and summarize it.

        Raises
        ------
        WorkerError
            Classified store failure (read, insert or update). Nothing after
            the failing step runs.
        """
        started = time.perf_counter()
        outcome = CycleOutcome(succeeded=False, attempts=1)

        with store.connection() as conn:
            with self._step("read", limit=self.read_limit):
                existing = read_active_users(conn, self.read_limit)
            outcome.rows_read = len(existing)

            outcome.handler_failures = self._handle_all(existing)

            with self._step("generate", rows=self.batch_size):
                batch = self.generator.generate(self.batch_size)

            with self._step("bulk_insert", rows=len(batch), exchanger=self.exchanger.name):
                outcome.rows_inserted = self.exchanger.bulk_insert(conn, batch)

            updated_batch = derive_updated_batch(batch, self.name_suffix)

            with self._step("bulk_update", rows=len(updated_batch), exchanger=self.exchanger.name):
                outcome.rows_updated = self.exchanger.bulk_update(conn, updated_batch)

        if outcome.rows_updated != len(updated_batch):
            log.warning(
                "Bulk update row count differs from batch size; exporting anyway",
                extra={
                    "event": "update_count_mismatch",
                    "expected": len(updated_batch),
                    "updated": outcome.rows_updated,
                },
            )

        self._export(sinks, updated_batch, outcome)

        outcome.succeeded = True
        outcome.duration_seconds = time.perf_counter() - started
        return outcome


__all__ = ["CycleRunner", "RecordHandler", "derive_updated_batch", "passthrough_handler"]
