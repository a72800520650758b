"""
Read side of the `users` table.
"""

from __future__ import annotations

from typing import List

from psycopg import Connection
from psycopg.rows import dict_row

from bulk_worker.domain.models import UserRecord
from bulk_worker.errors import translate_db_errors

USERS_TABLE = "public.users"

SELECT_ACTIVE_USERS = """
    SELECT id, name, email, created_date, is_active
    FROM public.users
    WHERE is_active = true
    ORDER BY created_date DESC
    LIMIT %s;
"""


def read_active_users(conn: Connection, limit: int) -> List[UserRecord]:
    """
    Fetch up to `limit` active users, most recently created first.

    The bound keeps per-cycle cost flat regardless of table growth.
    """
    if limit <= 0:
        return []
    with translate_db_errors():
        with conn.cursor(row_factory=dict_row) as cur:
            cur.execute(SELECT_ACTIVE_USERS, (limit,))
            rows = cur.fetchall()
    return [
        UserRecord(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            created_at=row["created_date"],
            is_active=row["is_active"],
        )
        for row in rows
    ]


__all__ = ["SELECT_ACTIVE_USERS", "USERS_TABLE", "read_active_users"]
