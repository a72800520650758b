"""
Chunked bulk exchanger for stores without COPY or table-shaped parameters.

Sends `chunk_size` rows per statement as multi-row VALUES lists, so N rows
cost ceil(N / chunk_size) round trips instead of N. All chunks of one call run
inside a single transaction, keeping the all-or-nothing contract.
"""

from __future__ import annotations

from typing import Iterator, List, Sequence

from psycopg import Connection
from psycopg import sql as psql

from bulk_worker.config import MAX_BIND_PARAMETERS
from bulk_worker.domain.models import UserRecord
from bulk_worker.errors import translate_db_errors
from bulk_worker.exchangers.abstract import (
    INSERT_COLUMNS,
    UPDATE_COLUMNS,
    AbstractBulkExchanger,
)
from bulk_worker.utils.logging import get_logger

log = get_logger(__name__)

# Largest chunk whose insert statement stays within the bind-parameter limit.
MAX_CHUNK_SIZE = MAX_BIND_PARAMETERS // len(INSERT_COLUMNS)

# Casts on every tuple keep VALUES typing independent of the first row.
_UPDATE_ROW = psql.SQL("(%s::uuid, %s::text, %s::text, %s::boolean)")
_INSERT_ROW = psql.SQL("({})").format(
    psql.SQL(", ").join(psql.Placeholder() for _ in INSERT_COLUMNS)
)


def _chunks(batch: Sequence[UserRecord], size: int) -> Iterator[Sequence[UserRecord]]:
    for start in range(0, len(batch), size):
        yield batch[start : start + size]


def _insert_statement(rows: int) -> psql.Composed:
    return psql.SQL("INSERT INTO {} ({}) VALUES {}").format(
        psql.Identifier("public", "users"),
        psql.SQL(", ").join(psql.Identifier(c) for c in INSERT_COLUMNS),
        psql.SQL(", ").join([_INSERT_ROW] * rows),
    )


def _update_statement(rows: int) -> psql.Composed:
    assignments = psql.SQL(", ").join(
        psql.SQL("{} = t.{}").format(psql.Identifier(c), psql.Identifier(c))
        for c in UPDATE_COLUMNS
        if c != "id"
    )
    return psql.SQL(
        "UPDATE {} AS u SET {} FROM (VALUES {}) AS t ({}) WHERE u.id = t.id"
    ).format(
        psql.Identifier("public", "users"),
        assignments,
        psql.SQL(", ").join([_UPDATE_ROW] * rows),
        psql.SQL(", ").join(psql.Identifier(c) for c in UPDATE_COLUMNS),
    )


class ChunkedBulkExchanger(AbstractBulkExchanger):
    """
    Multi-row INSERT / UPDATE ... FROM (VALUES ...) in fixed-size chunks.
    """

    name: str = "chunked"
    description: str = "Multi-row VALUES statements, chunk_size rows each, one transaction."

    def __init__(self, chunk_size: int = 500) -> None:
        if not 0 < chunk_size <= MAX_CHUNK_SIZE:
            raise ValueError(
                f"chunk_size must be between 1 and {MAX_CHUNK_SIZE}, got {chunk_size}"
            )
        self.chunk_size = chunk_size

    def _apply(self, conn: Connection, batch: Sequence[UserRecord], *, update: bool) -> int:
        affected = 0
        with translate_db_errors():
            with conn.transaction():
                with conn.cursor() as cur:
                    for chunk in _chunks(batch, self.chunk_size):
                        params: List[object] = []
                        for record in chunk:
                            params.extend(
                                record.update_values() if update else record.insert_values()
                            )
                        statement = (
                            _update_statement(len(chunk))
                            if update
                            else _insert_statement(len(chunk))
                        )
                        cur.execute(statement, params)
                        affected += max(cur.rowcount, 0)
        return affected

    def bulk_insert(self, conn: Connection, batch: Sequence[UserRecord]) -> int:
        if not batch:
            return 0
        inserted = self._apply(conn, batch, update=False)
        log.debug(
            "Chunked insert applied",
            extra={"rows": inserted, "chunk_size": self.chunk_size, "exchanger": self.name},
        )
        return inserted

    def bulk_update(self, conn: Connection, batch: Sequence[UserRecord]) -> int:
        if not batch:
            return 0
        updated = self._apply(conn, batch, update=True)
        log.debug(
            "Chunked update applied",
            extra={"rows": updated, "chunk_size": self.chunk_size, "exchanger": self.name},
        )
        return updated


__all__ = ["MAX_CHUNK_SIZE", "ChunkedBulkExchanger"]
