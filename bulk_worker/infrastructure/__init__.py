"""
Infrastructure package for the bulk worker.

Centralizes database connectivity concerns (pool-backed store handle, reads).
Keep this layer focused on I/O and resource management, decoupled from
cycle/executor logic.
"""

from bulk_worker.infrastructure.db_factory import (
    UserStore,
    apply_statement_timeout,
    build_dsn,
    check_connectivity,
)
from bulk_worker.infrastructure.users import read_active_users

__all__ = [
    "UserStore",
    "apply_statement_timeout",
    "build_dsn",
    "check_connectivity",
    "read_active_users",
]
