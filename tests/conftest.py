"""
Pytest configuration for the bulk worker.

Provides fixtures for:
- Settings pointed at the test database (env overridable, zero retry delay)
- An autocommit connection used to inspect table state directly
- Applying db/init.sql and truncating `users` around each test
- Seeding mixed active/inactive users through the COPY seed script
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Generator

import psycopg
import pytest

from bulk_worker.config import Settings, get_settings
from bulk_worker.infrastructure.db_factory import build_dsn


@pytest.fixture(autouse=True)
def _reset_settings_cache() -> Generator[None, None, None]:
    """Keep `get_settings()` from leaking monkeypatched env between tests."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings for the test database; DB_* env vars win over the defaults.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "bulk_worker"),
        db_statement_timeout_ms=10_000,
        log_level="DEBUG",
        retry_delay_seconds=0.0,
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """DSN built the same way the worker builds it."""
    return build_dsn(test_settings)


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Probe the test database once; integration fixtures skip when it is down.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture(scope="session")
def db_connection(
    test_dsn: str, db_connection_available: bool
) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a session-scoped autocommit connection for integration tests.

    Skips when the database is unreachable.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    conn = psycopg.connect(test_dsn, autocommit=True)
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture(scope="session")
def db_schema_initialized(db_connection: psycopg.Connection) -> bool:
    """
    Apply db/init.sql (idempotent) so the table, type and function exist.
    """
    init_sql_path = Path(__file__).parent.parent / "db" / "init.sql"
    with db_connection.cursor() as cur:
        cur.execute(init_sql_path.read_text(encoding="utf-8"))
    return True


@pytest.fixture(scope="function")
def clean_users_table(db_connection: psycopg.Connection, db_schema_initialized: bool):
    """
    Empty the users table before and after each test function.
    """
    with db_connection.cursor() as cur:
        cur.execute("TRUNCATE TABLE public.users;")
    yield
    with db_connection.cursor() as cur:
        cur.execute("TRUNCATE TABLE public.users;")


@pytest.fixture(scope="function")
def seeded_users(
    db_connection: psycopg.Connection,
    clean_users_table,
    test_dsn: str,
) -> int:
    """
    Seed 200 users (mixed active/inactive) and return the number loaded.
    """
    from scripts.seed_users import _copy_into_db, _generate_users_csv

    with tempfile.TemporaryDirectory() as tmpdir:
        csv_path = Path(tmpdir) / "users.csv"
        _generate_users_csv(csv_path, rows=200, seed=42, active_ratio=0.6)
        _copy_into_db(test_dsn, csv_path)

    with db_connection.cursor() as cur:
        cur.execute("SELECT COUNT(*) FROM public.users;")
        count = cur.fetchone()[0]

    return count
