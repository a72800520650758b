"""
Integration tests for the bulk worker against a real PostgreSQL instance.

These tests verify that:
1. Each bulk exchanger inserts and updates a whole batch atomically
2. The bounded read returns the newest active users first
3. A full cycle leaves the store and both export artifacts consistent

Run with: RUN_INTEGRATION_TESTS=1 pytest tests/integration/
"""

from __future__ import annotations

import csv
import json
import os

import psycopg
import pytest

from bulk_worker.config import Settings
from bulk_worker.cycle import derive_updated_batch
from bulk_worker.domain.generator import UserGenerator
from bulk_worker.errors import ConstraintError
from bulk_worker.exchangers import ChunkedBulkExchanger, CopyBulkExchanger
from bulk_worker.infrastructure.db_factory import UserStore, check_connectivity
from bulk_worker.infrastructure.users import read_active_users
from bulk_worker.orchestrator import run_once
from bulk_worker.sinks import CsvExportSink, JsonExportSink

# Test configuration constants
DEFAULT_BATCH = 250
DEFAULT_CHUNK_SIZE = 40
DEFAULT_READ_LIMIT = 25
CYCLE_BATCH = 50

pytestmark = pytest.mark.skipif(
    os.getenv("RUN_INTEGRATION_TESTS", "0") != "1",
    reason="Integration tests require RUN_INTEGRATION_TESTS=1 and reachable Postgres",
)

EXCHANGERS = [
    pytest.param(CopyBulkExchanger(), id="copy"),
    pytest.param(ChunkedBulkExchanger(chunk_size=DEFAULT_CHUNK_SIZE), id="chunked"),
]


def _names_by_id(conn: psycopg.Connection) -> dict:
    with conn.cursor() as cur:
        cur.execute("SELECT id, name FROM public.users;")
        return {row[0]: row[1] for row in cur.fetchall()}


@pytest.fixture
def store(test_settings: Settings, test_dsn: str, db_schema_initialized: bool):
    with UserStore(test_settings, dsn_override=test_dsn) as s:
        yield s


class TestConnectivity:
    def test_check_connectivity(self, test_dsn: str, db_connection_available: bool):
        if not db_connection_available:
            pytest.skip("Database not available for integration tests")
        assert check_connectivity(test_dsn) is True


class TestBulkExchangers:
    """Insert + update round trips for every exchanger."""

    @pytest.mark.parametrize("exchanger", EXCHANGERS)
    def test_insert_then_update_round_trip(self, exchanger, store, clean_users_table, db_connection):
        batch = UserGenerator(seed=1).generate(DEFAULT_BATCH)
        updated_batch = derive_updated_batch(batch, " Updated")

        with store.connection() as conn:
            inserted = exchanger.bulk_insert(conn, batch)
            updated = exchanger.bulk_update(conn, updated_batch)

        assert inserted == DEFAULT_BATCH
        assert updated == DEFAULT_BATCH
        names = _names_by_id(db_connection)
        assert names == {r.id: r.name for r in updated_batch}

    @pytest.mark.parametrize("exchanger", EXCHANGERS)
    def test_update_is_idempotent(self, exchanger, store, clean_users_table, db_connection):
        batch = UserGenerator(seed=2).generate(10)
        updated_batch = derive_updated_batch(batch, " Updated")

        with store.connection() as conn:
            exchanger.bulk_insert(conn, batch)
            exchanger.bulk_update(conn, updated_batch)
            again = exchanger.bulk_update(conn, updated_batch)

        assert again == 10
        # suffix applied once, not twice
        assert all(name.endswith(" Updated") and not name.endswith(" Updated Updated")
                   for name in _names_by_id(db_connection).values())

    @pytest.mark.parametrize("exchanger", EXCHANGERS)
    def test_update_ignores_unknown_ids(self, exchanger, store, clean_users_table):
        ghosts = derive_updated_batch(UserGenerator(seed=3).generate(5), " Updated")
        with store.connection() as conn:
            assert exchanger.bulk_update(conn, ghosts) == 0

    @pytest.mark.parametrize("exchanger", EXCHANGERS)
    def test_duplicate_insert_is_atomic_constraint_error(
        self, exchanger, store, clean_users_table, db_connection
    ):
        existing = UserGenerator(seed=4).generate(1)
        with store.connection() as conn:
            exchanger.bulk_insert(conn, existing)

        batch = UserGenerator(seed=5).generate(20) + existing
        with pytest.raises(ConstraintError):
            with store.connection() as conn:
                exchanger.bulk_insert(conn, batch)

        # none of the 20 fresh rows landed
        assert set(_names_by_id(db_connection)) == {existing[0].id}


class TestReadActiveUsers:
    def test_returns_newest_active_users_up_to_limit(self, store, seeded_users: int):
        with store.connection() as conn:
            users = read_active_users(conn, DEFAULT_READ_LIMIT)

        assert 0 < len(users) <= DEFAULT_READ_LIMIT
        assert all(u.is_active for u in users)
        created = [u.created_at for u in users]
        assert created == sorted(created, reverse=True)

    def test_zero_limit_reads_nothing(self, store, seeded_users: int):
        with store.connection() as conn:
            assert read_active_users(conn, 0) == []


class TestFullCycle:
    @pytest.mark.parametrize("mode", ["copy", "chunked"])
    def test_run_once_end_to_end(self, mode, test_settings, test_dsn, tmp_path, seeded_users, db_connection):
        settings = test_settings.model_copy(
            update={"bulk_mode": mode, "batch_size": CYCLE_BATCH, "read_limit": DEFAULT_READ_LIMIT}
        )
        csv_path = tmp_path / "users.csv"
        json_path = tmp_path / "users.json"

        with UserStore(settings, dsn_override=test_dsn) as store:
            outcome = run_once(
                settings=settings,
                store=store,
                sinks=[CsvExportSink(csv_path), JsonExportSink(json_path)],
            )

        assert outcome.succeeded, outcome.error
        assert outcome.rows_inserted == CYCLE_BATCH
        assert outcome.rows_updated == CYCLE_BATCH
        assert outcome.rows_exported == CYCLE_BATCH

        with csv_path.open("r", newline="", encoding="utf-8") as f:
            rows = list(csv.DictReader(f))
        payload = json.loads(json_path.read_text(encoding="utf-8"))
        assert len(rows) == len(payload) == CYCLE_BATCH

        stored = {str(k): v for k, v in _names_by_id(db_connection).items()}
        for row in rows:
            assert stored[row["Id"]] == row["Name"]
            assert row["Name"].endswith(" Updated")
