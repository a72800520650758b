"""
Native bulk exchanger for PostgreSQL.

- Insert: `COPY public.users (...) FROM STDIN`, rows streamed with
  `write_row`; the server applies all of them or none.
- Update: the derived batch is bound as ONE parameter of the server-side
  composite array type `public.user_update[]` and handed to
  `public.update_users`, which joins it against `users` by id and returns the
  affected row count. One round trip regardless of batch size.
"""

from __future__ import annotations

from typing import Sequence

from psycopg import Connection
from psycopg import sql as psql
from psycopg.types.composite import CompositeInfo, register_composite

from bulk_worker.domain.models import UserRecord
from bulk_worker.errors import UnclassifiedError, translate_db_errors
from bulk_worker.exchangers.abstract import INSERT_COLUMNS, AbstractBulkExchanger
from bulk_worker.utils.logging import get_logger

log = get_logger(__name__)

UPDATE_TYPE = "public.user_update"
# Key under which psycopg registers the type on a connection.
UPDATE_TYPE_NAME = "user_update"
UPDATE_FUNCTION_SQL = "SELECT public.update_users(%s::public.user_update[]);"

COPY_USERS_SQL = psql.SQL("COPY {} ({}) FROM STDIN").format(
    psql.Identifier("public", "users"),
    psql.SQL(", ").join(psql.Identifier(c) for c in INSERT_COLUMNS),
)


class CopyBulkExchanger(AbstractBulkExchanger):
    """
    COPY for inserts, composite-array parameter for updates.
    """

    name: str = "copy"
    description: str = "COPY FROM STDIN insert + user_update[] table-shaped parameter update."

    def _register_update_type(self, conn: Connection) -> CompositeInfo:
        """Fetch and register `user_update` once per connection; reuse it afterwards."""
        registered = conn.adapters.types.get(UPDATE_TYPE_NAME)
        if isinstance(registered, CompositeInfo):
            return registered
        info = CompositeInfo.fetch(conn, UPDATE_TYPE)
        if info is None:
            raise UnclassifiedError(
                f"composite type {UPDATE_TYPE} not found; apply db/init.sql first"
            )
        register_composite(info, conn)
        return info

    def bulk_insert(self, conn: Connection, batch: Sequence[UserRecord]) -> int:
        if not batch:
            return 0
        with translate_db_errors():
            with conn.transaction():
                with conn.cursor() as cur:
                    with cur.copy(COPY_USERS_SQL) as copy:
                        for record in batch:
                            copy.write_row(record.insert_values())
                    copied = cur.rowcount
        # COPY is all-or-nothing; older servers may not report a count.
        inserted = copied if copied is not None and copied >= 0 else len(batch)
        log.debug("COPY inserted rows", extra={"rows": inserted, "exchanger": self.name})
        return inserted

    def bulk_update(self, conn: Connection, batch: Sequence[UserRecord]) -> int:
        if not batch:
            return 0
        with translate_db_errors():
            info = self._register_update_type(conn)
            row_type = info.python_type
            payload = [row_type(*record.update_values()) for record in batch]
            with conn.transaction():
                with conn.cursor() as cur:
                    cur.execute(UPDATE_FUNCTION_SQL, (payload,))
                    row = cur.fetchone()
        updated = int(row[0]) if row and row[0] is not None else 0
        log.debug("update_users applied", extra={"rows": updated, "exchanger": self.name})
        return updated


__all__ = ["CopyBulkExchanger"]
