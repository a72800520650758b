"""
Periodic, non-overlapping execution of one cycle.

State machine:

    IDLE --tick (flag clear)--> RUNNING --cycle terminal--> IDLE

- The IDLE -> RUNNING check-and-set happens under one lock, so two ticks can
  never both observe IDLE.
- A tick that finds RUNNING is dropped: no queueing, no catch-up later.
- RUNNING -> IDLE happens in a `finally`, whatever the cycle did.
- The timer thread only evaluates ticks; cycles run on a dedicated
  single-worker pool, so a slow cycle never delays tick evaluation.
- The timer fires at start and then on a fixed-rate grid `t0 + k * period`.
  Slots missed while the process was stalled are skipped, not bursted.

Usage:
    executor = ScheduledExecutor(cycle, period_seconds=10, retry_policy=policy)
    executor.start()
    ...
    executor.stop()  # waits for an in-flight cycle
"""

from __future__ import annotations

import enum
import math
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as futures_wait
from typing import Callable, Optional

from bulk_worker.domain.models import CycleOutcome
from bulk_worker.retry import RetryPolicy
from bulk_worker.utils.logging import get_logger

log = get_logger(__name__)

CycleCallable = Callable[[], CycleOutcome]
OutcomeObserver = Callable[[CycleOutcome], None]


class ExecutorState(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"


class ScheduledExecutor:
    """
    Drive `cycle` every `period_seconds`, at most one execution at a time.

    Parameters
    ----------
    cycle : callable
        Zero-argument callable running one cycle and returning its outcome.
    period_seconds : float
        Fixed tick period.
    retry_policy : RetryPolicy, optional
        Wraps each cycle; defaults to `RetryPolicy()` (3 retries, 2s apart).
    on_outcome : callable, optional
        Receives every terminal CycleOutcome. Failures are logged and ignored.
    name : str
        Used for thread names and log lines.
    clock : callable
        Monotonic clock; tests may override.
    """

    def __init__(
        self,
        cycle: CycleCallable,
        period_seconds: float = 10.0,
        retry_policy: Optional[RetryPolicy] = None,
        on_outcome: Optional[OutcomeObserver] = None,
        name: str = "cycle",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if period_seconds <= 0:
            raise ValueError(f"period_seconds must be > 0, got {period_seconds}")
        self._cycle = cycle
        self.period_seconds = period_seconds
        self.retry_policy = retry_policy or RetryPolicy()
        self._on_outcome = on_outcome
        self.name = name
        self._clock = clock

        self._lock = threading.Lock()
        self._state = ExecutorState.IDLE
        self._stop_event = threading.Event()
        self._timer_thread: Optional[threading.Thread] = None
        self._pool: Optional[ThreadPoolExecutor] = None
        self._in_flight: Optional[Future] = None
        self._cycle_thread: Optional[int] = None
        self._accepting = False

        self._cycles_started = 0
        self._ticks_dropped = 0
        self._last_outcome: Optional[CycleOutcome] = None

    # ---------- state ----------

    @property
    def state(self) -> ExecutorState:
        with self._lock:
            return self._state

    @property
    def is_running(self) -> bool:
        return self.state is ExecutorState.RUNNING

    @property
    def cycles_started(self) -> int:
        with self._lock:
            return self._cycles_started

    @property
    def ticks_dropped(self) -> int:
        with self._lock:
            return self._ticks_dropped

    @property
    def last_outcome(self) -> Optional[CycleOutcome]:
        with self._lock:
            return self._last_outcome

    def _claim_locked(self) -> bool:
        """IDLE -> RUNNING; caller must hold `_lock`."""
        if self._state is ExecutorState.RUNNING:
            return False
        self._state = ExecutorState.RUNNING
        self._cycles_started += 1
        return True

    def _finish(self, outcome: Optional[CycleOutcome]) -> None:
        with self._lock:
            if outcome is not None:
                self._last_outcome = outcome
            self._state = ExecutorState.IDLE

    # ---------- cycle execution ----------

    def _notify(self, outcome: CycleOutcome) -> None:
        if self._on_outcome is None:
            return
        try:
            self._on_outcome(outcome)
        except Exception:  # noqa: BLE001 - observers must not affect scheduling
            log.exception("Outcome observer failed", extra={"executor": self.name})

    def _execute(self) -> CycleOutcome:
        log.info(f"[CYCLE START] {self.name}", extra={"event": "cycle_start", "executor": self.name})
        started = time.perf_counter()
        faulted = False
        try:
            result = self.retry_policy.execute(self._cycle)
            if result.succeeded and result.value is not None:
                outcome = result.value.with_attempts(result.attempts)
            else:
                outcome = CycleOutcome.failure(
                    result.error or RuntimeError("cycle returned no outcome"), result.attempts
                )
        except Exception as exc:  # noqa: BLE001 - a cycle fault must never kill the worker
            log.exception(
                f"[CYCLE FAULT] {self.name}",
                extra={"event": "cycle_fault", "executor": self.name, "error": str(exc)},
            )
            faulted = True
            outcome = CycleOutcome.failure(exc, attempts=0)

        if not outcome.duration_seconds:
            outcome.duration_seconds = time.perf_counter() - started

        fields = {"event": "cycle_end", "executor": self.name, **outcome.as_log_fields()}
        if outcome.succeeded:
            log.info(
                f"[CYCLE END] {self.name} inserted={outcome.rows_inserted} "
                f"updated={outcome.rows_updated} exported={outcome.rows_exported}",
                extra=fields,
            )
        else:
            log.error(
                f"[CYCLE FAILED] {self.name} after {outcome.attempts} attempt(s): {outcome.error!r}",
                extra=fields,
                # the fault handler above already logged the traceback
                exc_info=None if faulted else outcome.error,
            )
        self._notify(outcome)
        return outcome

    def _run_claimed(self) -> CycleOutcome:
        outcome: Optional[CycleOutcome] = None
        self._cycle_thread = threading.get_ident()
        try:
            outcome = self._execute()
            return outcome
        finally:
            self._cycle_thread = None
            self._finish(outcome)

    def run_cycle(self) -> Optional[CycleOutcome]:
        """
        Run one cycle on the calling thread, honoring the re-entrancy guard.

        Works whether or not the timer is started (the CLI's `run-once` uses
        it directly). Returns None without running if a cycle is already in
        progress. Never raises for cycle failures.
        """
        with self._lock:
            claimed = self._claim_locked()
        if not claimed:
            return None
        return self._run_claimed()

    def tick(self) -> Optional[Future]:
        """
        Evaluate one timer tick without blocking.

        Returns the Future of the dispatched cycle, or None if the tick was
        dropped because a cycle is running or the executor is stopped.
        """
        with self._lock:
            if self._accepting and self._pool is not None and self._claim_locked():
                try:
                    future = self._pool.submit(self._run_claimed)
                except BaseException:
                    self._state = ExecutorState.IDLE
                    self._cycles_started -= 1
                    raise
                self._in_flight = future
                return future
            self._ticks_dropped += 1
            reason = "cycle still running" if self._accepting else "executor stopped"
        log.debug(
            f"[TICK DROPPED] {self.name}: {reason}",
            extra={"event": "tick_dropped", "executor": self.name, "reason": reason},
        )
        return None

    # ---------- timer ----------

    def _timer_loop(self) -> None:
        origin = self._clock()
        slot = 0
        while True:
            try:
                self.tick()
            except Exception:  # noqa: BLE001 - keep ticking
                log.exception("Tick dispatch failed", extra={"executor": self.name})
            elapsed = self._clock() - origin
            slot = max(slot + 1, math.floor(elapsed / self.period_seconds) + 1)
            delay = max(0.0, origin + slot * self.period_seconds - self._clock())
            if self._stop_event.wait(timeout=delay):
                return

    # ---------- lifecycle ----------

    def start(self) -> "ScheduledExecutor":
        """Start the timer; the first tick fires immediately."""
        with self._lock:
            if self._timer_thread is not None:
                raise RuntimeError(f"executor '{self.name}' already started")
            self._stop_event.clear()
            self._pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"{self.name}-worker")
            self._accepting = True
            timer = threading.Thread(target=self._timer_loop, name=f"{self.name}-timer", daemon=True)
            self._timer_thread = timer
        try:
            timer.start()
        except BaseException:
            with self._lock:
                self._accepting = False
                self._timer_thread = None
                pool, self._pool = self._pool, None
            if pool is not None:
                pool.shutdown(wait=False)
            raise
        log.info(
            f"[EXECUTOR STARTED] {self.name} period={self.period_seconds}s",
            extra={"event": "executor_started", "executor": self.name, "period_seconds": self.period_seconds},
        )
        return self

    def stop(self, wait: bool = True, timeout: Optional[float] = None) -> bool:
        """
        Stop ticking. No tick is evaluated after this returns.

        Parameters
        ----------
        wait : bool
            Block until an in-flight cycle reaches its terminal state.
        timeout : float, optional
            Upper bound for that wait.

        Returns
        -------
        bool
            True if no cycle is running when stop returns.
        """
        with self._lock:
            self._accepting = False
            timer, self._timer_thread = self._timer_thread, None
            pool, self._pool = self._pool, None
            in_flight = self._in_flight
        self._stop_event.set()

        if timer is not None and timer is not threading.current_thread():
            timer.join(timeout=timeout)

        # stop() from inside the cycle (or its observer) cannot wait for itself
        inside_cycle = self._cycle_thread == threading.get_ident()
        if wait and not inside_cycle and in_flight is not None and not in_flight.done():
            log.info(f"[EXECUTOR STOPPING] {self.name}: waiting for in-flight cycle")
            futures_wait([in_flight], timeout=timeout)
        if pool is not None:
            # The interpreter joins pool workers at exit, so a cycle still
            # running after a timed-out wait is finished rather than killed.
            pool.shutdown(wait=False)

        idle = not self.is_running
        if timer is not None or pool is not None:
            log.info(
                f"[EXECUTOR STOPPED] {self.name}",
                extra={"event": "executor_stopped", "executor": self.name, "idle": idle},
            )
        return idle

    def __enter__(self) -> "ScheduledExecutor":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        del exc_type, exc, tb
        self.stop(wait=True)


__all__ = ["ExecutorState", "ScheduledExecutor"]
