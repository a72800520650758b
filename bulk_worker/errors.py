"""
Error taxonomy for the bulk worker.

Every failure that crosses a store or export boundary is translated into one
of four classes so the retry policy can decide on data, not on driver types:

- TransientStoreError: connectivity blips, pool exhaustion, timeouts. Retryable.
- ConstraintError: duplicate keys, failed server-side validation. Not retryable.
- SerializationError: an export sink could not write its artifact.
- UnclassifiedError: anything else. Not retryable.

The original driver exception is always kept as ``__cause__``.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

import psycopg
import psycopg.errors as E


class WorkerError(Exception):
    """Base class for classified worker failures."""


class TransientStoreError(WorkerError):
    """Temporary store failure that should be retried after a delay."""


class ConstraintError(WorkerError):
    """Constraint violation or server-side validation failure."""


class SerializationError(WorkerError):
    """An export sink failed to serialize or write its artifact."""


class UnclassifiedError(WorkerError):
    """Any other store failure; treated as non-retryable."""


_TRANSIENT_TYPES = (
    E.QueryCanceled,
    E.SerializationFailure,
    E.DeadlockDetected,
    E.AdminShutdown,
    E.CannotConnectNow,
    psycopg.OperationalError,
    psycopg.InterfaceError,
    TimeoutError,
    ConnectionError,
)

_CONSTRAINT_TYPES = (
    psycopg.IntegrityError,
    psycopg.DataError,
    E.RaiseException,
)


def map_db_error(exc: BaseException) -> WorkerError:
    """Translate a driver/OS exception into the worker taxonomy."""
    if isinstance(exc, WorkerError):
        return exc
    message = str(exc) or type(exc).__name__
    # RaiseException subclasses InternalError, not OperationalError; check
    # constraints before the broad OperationalError bucket.
    if isinstance(exc, _CONSTRAINT_TYPES):
        return ConstraintError(message)
    if isinstance(exc, _TRANSIENT_TYPES):
        return TransientStoreError(message)
    return UnclassifiedError(message)


@contextmanager
def translate_db_errors() -> Iterator[None]:
    """Re-raise driver and socket errors as classified worker errors."""
    try:
        yield
    except WorkerError:
        raise
    except (psycopg.Error, OSError) as exc:
        raise map_db_error(exc) from exc


def is_retryable(exc: BaseException) -> bool:
    """
    Default retry classifier.

    Only transient store failures are retried. Raw driver connectivity errors
    that escaped translation are treated the same way.
    """
    if isinstance(exc, WorkerError):
        return isinstance(exc, TransientStoreError)
    return isinstance(map_db_error(exc), TransientStoreError)


__all__ = [
    "WorkerError",
    "TransientStoreError",
    "ConstraintError",
    "SerializationError",
    "UnclassifiedError",
    "map_db_error",
    "translate_db_errors",
    "is_retryable",
]
