import psycopg
import psycopg.errors as E
import pytest

from bulk_worker.errors import (
    ConstraintError,
    SerializationError,
    TransientStoreError,
    UnclassifiedError,
    is_retryable,
    map_db_error,
    translate_db_errors,
)


@pytest.mark.parametrize(
    "exc",
    [
        psycopg.OperationalError("server closed the connection unexpectedly"),
        E.QueryCanceled("canceling statement due to statement timeout"),
        E.DeadlockDetected("deadlock detected"),
        TimeoutError("pool timeout"),
        ConnectionRefusedError("refused"),
    ],
)
def test_transient_failures_are_retryable(exc):
    mapped = map_db_error(exc)
    assert isinstance(mapped, TransientStoreError)
    assert is_retryable(mapped)
    assert is_retryable(exc)


@pytest.mark.parametrize(
    "exc",
    [
        E.UniqueViolation("duplicate key value violates unique constraint"),
        E.NotNullViolation("null value in column"),
        E.RaiseException("rejected by validation"),
        psycopg.DataError("invalid input syntax for type uuid"),
    ],
)
def test_constraint_failures_are_not_retryable(exc):
    mapped = map_db_error(exc)
    assert isinstance(mapped, ConstraintError)
    assert not is_retryable(mapped)


def test_unknown_driver_errors_are_unclassified():
    mapped = map_db_error(psycopg.ProgrammingError("syntax error at or near"))
    assert isinstance(mapped, UnclassifiedError)
    assert not is_retryable(mapped)


def test_serialization_errors_are_not_retryable():
    assert not is_retryable(SerializationError("disk full"))


def test_map_db_error_passes_worker_errors_through():
    err = TransientStoreError("already classified")
    assert map_db_error(err) is err


def test_translate_db_errors_keeps_original_as_cause():
    original = E.UniqueViolation("duplicate key")
    with pytest.raises(ConstraintError) as excinfo:
        with translate_db_errors():
            raise original
    assert excinfo.value.__cause__ is original


def test_translate_db_errors_leaves_other_exceptions_alone():
    with pytest.raises(KeyError):
        with translate_db_errors():
            raise KeyError("not a store failure")
