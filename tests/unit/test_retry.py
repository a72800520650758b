from typing import List

import pytest

from bulk_worker.config import Settings
from bulk_worker.errors import ConstraintError, TransientStoreError
from bulk_worker.retry import RetryPolicy


class _Flaky:
    """Raise the queued errors in order, then return `value`."""

    def __init__(self, errors, value="ok"):
        self._errors = list(errors)
        self.value = value
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self._errors:
            raise self._errors.pop(0)
        return self.value


def _policy(sleeps: List[float], **kwargs) -> RetryPolicy:
    kwargs.setdefault("max_retries", 3)
    kwargs.setdefault("delay_seconds", 2.0)
    return RetryPolicy(sleep=sleeps.append, **kwargs)


def test_succeeds_after_two_transient_failures():
    sleeps: List[float] = []
    op = _Flaky([TransientStoreError("blip 1"), TransientStoreError("blip 2")])

    result = _policy(sleeps).execute(op)

    assert result.succeeded
    assert result.value == "ok"
    assert result.attempts == 3
    assert op.calls == 3
    assert [d.attempt_number for d in result.decisions] == [1, 2]
    assert all(d.delay_before_next_attempt == 2.0 for d in result.decisions)
    assert sleeps == [2.0, 2.0]


def test_exhausted_retries_return_the_last_error_object():
    sleeps: List[float] = []
    errors = [TransientStoreError(f"blip {i}") for i in range(4)]
    op = _Flaky(errors)

    result = _policy(sleeps).execute(op)

    assert not result.succeeded
    assert result.attempts == 4
    assert op.calls == 4
    assert result.error is errors[-1]
    assert len(result.decisions) == 3
    assert sleeps == [2.0, 2.0, 2.0]


def test_non_retryable_error_stops_after_first_attempt():
    sleeps: List[float] = []
    error = ConstraintError("duplicate key")
    op = _Flaky([error])

    result = _policy(sleeps).execute(op)

    assert result.attempts == 1
    assert result.error is error
    assert result.decisions == []
    assert sleeps == []


def test_zero_retries_means_single_attempt():
    sleeps: List[float] = []
    result = _policy(sleeps, max_retries=0).execute(_Flaky([TransientStoreError("x")]))
    assert result.attempts == 1
    assert sleeps == []


def test_custom_classifier_decides_retryability():
    sleeps: List[float] = []
    op = _Flaky([KeyError("retry me")], value=42)

    result = _policy(sleeps, classifier=lambda exc: isinstance(exc, KeyError)).execute(op)

    assert result.value == 42
    assert result.attempts == 2


def test_observer_receives_decisions_and_its_failures_are_ignored():
    seen = []

    def observer(decision):
        seen.append(decision)
        raise RuntimeError("observer is broken")

    sleeps: List[float] = []
    op = _Flaky([TransientStoreError("blip")])

    result = _policy(sleeps, on_retry=observer).execute(op)

    assert result.succeeded
    assert len(seen) == 1
    assert isinstance(seen[0].triggering_error, TransientStoreError)


def test_retry_attempts_are_logged(caplog):
    sleeps: List[float] = []
    with caplog.at_level("WARNING", logger="bulk_worker.retry"):
        result = _policy(sleeps).execute(
            _Flaky([TransientStoreError("blip 1"), TransientStoreError("blip 2")])
        )
    assert result.succeeded
    events = [r for r in caplog.records if getattr(r, "event", None) == "retry_attempt"]
    assert [r.attempt for r in events] == [1, 2]
    assert [r.delay_seconds for r in events] == [2.0, 2.0]
    assert {r.error_type for r in events} == {"TransientStoreError"}
    assert sleeps == [2.0, 2.0]


def test_unwrap_reraises_final_error():
    sleeps: List[float] = []
    error = ConstraintError("nope")
    result = _policy(sleeps).execute(_Flaky([error]))
    with pytest.raises(ConstraintError) as excinfo:
        result.unwrap()
    assert excinfo.value is error


def test_from_settings_and_validation():
    policy = RetryPolicy.from_settings(Settings(retry_max_retries=5, retry_delay_seconds=0.5))
    assert policy.max_attempts == 6
    assert policy.delay_seconds == 0.5
    with pytest.raises(ValueError):
        RetryPolicy(max_retries=-1)
