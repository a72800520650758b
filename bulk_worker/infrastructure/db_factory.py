"""
Database connection factory utilities for the bulk worker.

Provides the store handle the cycle runner consumes: a `UserStore` owning a
psycopg `ConnectionPool` with explicit open/close lifecycle. Connections are
autocommit; bulk operations open their own transactions so each transfer is
atomic on its own. Every connection gets a server-side statement timeout so a
stuck command surfaces as a (retryable) `QueryCanceled`.

Includes retry logic for the initial connectivity probe using tenacity.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Callable, Generator, Optional

import psycopg
from psycopg import Connection
from psycopg_pool import ConnectionPool
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from bulk_worker.config import Settings, get_settings
from bulk_worker.errors import translate_db_errors
from bulk_worker.utils.logging import get_logger

log = get_logger(__name__)


def build_dsn(settings: Optional[Settings] = None) -> str:
    """Compose a DSN string from settings."""
    settings = settings or get_settings()
    return (
        f"postgresql://{settings.db_user}:{settings.db_password}"
        f"@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )


def apply_statement_timeout(conn: Connection, timeout_ms: int) -> None:
    """Set the session statement timeout; 0 disables it."""
    conn.execute(f"SET statement_timeout = {int(timeout_ms)}")


class UserStore:
    """
    Store handle backed by a psycopg connection pool.

    The pool is created lazily and opened on `open()` (or first use); `close()`
    releases it and is safe to call repeatedly. Usable as a context manager.

    Parameters
    ----------
    settings : Settings, optional
        Source of DSN, timeouts and pool sizes. Defaults to `get_settings()`.
    dsn_override : str, optional
        Connect to this DSN instead of the one built from settings.
    pool_factory : callable, optional
        Replaces `ConnectionPool` (tests inject fakes here).
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        dsn_override: Optional[str] = None,
        pool_factory: Callable[..., ConnectionPool] = ConnectionPool,
    ) -> None:
        self._settings = settings or get_settings()
        self._dsn = dsn_override or build_dsn(self._settings)
        self._pool_factory = pool_factory
        self._pool: Optional[ConnectionPool] = None
        self._lock = threading.Lock()

    def _configure(self, conn: Connection) -> None:
        apply_statement_timeout(conn, self._settings.db_statement_timeout_ms)

    def _get_pool(self) -> ConnectionPool:
        with self._lock:
            if self._pool is None:
                pool = self._pool_factory(
                    conninfo=self._dsn,
                    min_size=self._settings.db_pool_min_size,
                    max_size=self._settings.db_pool_max_size,
                    timeout=self._settings.db_pool_timeout_seconds,
                    kwargs={
                        "autocommit": True,
                        "connect_timeout": self._settings.db_connect_timeout_seconds,
                    },
                    configure=self._configure,
                    open=False,
                )
                try:
                    pool.open()
                except Exception:
                    pool.close()
                    raise
                self._pool = pool
                log.info(
                    "Connection pool opened",
                    extra={
                        "host": self._settings.db_host,
                        "db": self._settings.db_name,
                        "pool_max": self._settings.db_pool_max_size,
                    },
                )
            return self._pool

    def open(self) -> "UserStore":
        with translate_db_errors():
            self._get_pool()
        return self

    @contextmanager
    def connection(self) -> Generator[Connection, None, None]:
        """
        Borrow a pooled connection for the duration of the block.

        Acquisition failures (pool timeout, refused connection) and driver
        errors raised inside the block surface as classified worker errors.
        """
        with translate_db_errors():
            with self._get_pool().connection() as conn:
                yield conn

    def close(self) -> None:
        """Close the pool and release all connections."""
        with self._lock:
            pool, self._pool = self._pool, None
        if pool is not None:
            pool.close()
            log.info("Connection pool closed")

    def __enter__(self) -> "UserStore":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        del exc_type, exc, tb
        self.close()


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((psycopg.OperationalError, psycopg.InterfaceError)),
    reraise=True,
)
def check_connectivity(dsn: str, connect_timeout: int = 5) -> bool:
    """
    Probe the database with `SELECT 1`, retrying transient connection errors.

    Raises
    ------
    psycopg.OperationalError
        If the server is unreachable after all retry attempts.
    """
    with psycopg.connect(dsn, connect_timeout=connect_timeout) as conn:
        conn.execute("SELECT 1").fetchone()
    return True


__all__ = [
    "UserStore",
    "apply_statement_timeout",
    "build_dsn",
    "check_connectivity",
]
