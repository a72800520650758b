"""
Bounded, fixed-delay retry around a unit of work.

The policy never raises on behalf of the operation: `execute` returns a
`RetryResult` carrying either the value or the final error, the number of
attempts consumed, and the `RetryDecision` recorded for each retry. Callers
that prefer exceptions call `result.unwrap()`.

Usage:
    policy = RetryPolicy(max_retries=3, delay_seconds=2.0)
    result = policy.execute(lambda: runner.run_once(store, sinks))
    if result.succeeded:
        outcome = result.value
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Generic, List, Optional, TypeVar

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_fixed,
)

from bulk_worker.config import Settings
from bulk_worker.domain.models import RetryDecision
from bulk_worker.errors import is_retryable
from bulk_worker.utils.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")


@dataclass
class RetryResult(Generic[T]):
    """
    Outcome of a retried operation.
    """

    value: Optional[T] = None
    error: Optional[BaseException] = None
    attempts: int = 0
    decisions: List[RetryDecision] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value, or raise the final error unchanged."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


class RetryPolicy:
    """
    Retry a callable on classified transient failures.

    Parameters
    ----------
    max_retries : int
        Retries after the first attempt (3 -> up to 4 attempts in total).
    delay_seconds : float
        Fixed wait between attempts; not exponential.
    classifier : callable
        Predicate over the raised exception; True means retryable.
    on_retry : callable, optional
        Observer receiving each RetryDecision. Its failures are logged and
        never interrupt the retry loop.
    sleep : callable
        Sleep function (tests inject a recorder).
    """

    def __init__(
        self,
        max_retries: int = 3,
        delay_seconds: float = 2.0,
        classifier: Callable[[BaseException], bool] = is_retryable,
        on_retry: Optional[Callable[[RetryDecision], None]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {max_retries}")
        if delay_seconds < 0:
            raise ValueError(f"delay_seconds must be >= 0, got {delay_seconds}")
        self.max_retries = max_retries
        self.delay_seconds = delay_seconds
        self.classifier = classifier
        self.on_retry = on_retry
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "RetryPolicy":
        return cls(
            max_retries=settings.retry_max_retries,
            delay_seconds=settings.retry_delay_seconds,
            **kwargs,
        )

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def _emit(self, decision: RetryDecision) -> None:
        log.warning(
            f"[RETRY] attempt {decision.attempt_number} failed, retrying in "
            f"{decision.delay_before_next_attempt:.1f}s: {decision.triggering_error!r}",
            extra={
                "event": "retry_attempt",
                "attempt": decision.attempt_number,
                "max_attempts": self.max_attempts,
                "delay_seconds": decision.delay_before_next_attempt,
                "error_type": type(decision.triggering_error).__name__,
                "error": str(decision.triggering_error),
            },
        )
        if self.on_retry is None:
            return
        try:
            self.on_retry(decision)
        except Exception:  # noqa: BLE001 - observers must not break the loop
            log.exception("Retry observer failed", extra={"attempt": decision.attempt_number})

    def execute(self, operation: Callable[[], T]) -> RetryResult[T]:
        """
        Run `operation` until it succeeds, fails non-retryably, or attempts run out.

        Returns
        -------
        RetryResult
            `error` is the exact exception object raised by the final attempt.
        """
        result: RetryResult[T] = RetryResult()

        def before_sleep(state: RetryCallState) -> None:
            error = state.outcome.exception() if state.outcome else None
            decision = RetryDecision(
                attempt_number=state.attempt_number,
                delay_before_next_attempt=self.delay_seconds,
                triggering_error=error,
            )
            result.decisions.append(decision)
            self._emit(decision)

        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_fixed(self.delay_seconds),
            retry=retry_if_exception(self.classifier),
            before_sleep=before_sleep,
            sleep=self._sleep,
            reraise=True,
        )

        try:
            for attempt in retrying:
                with attempt:
                    result.attempts += 1
                    result.value = operation()
        except Exception as exc:  # noqa: BLE001 - failures are returned as data
            result.value = None
            result.error = exc
        return result


__all__ = ["RetryPolicy", "RetryResult"]
