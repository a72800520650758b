"""
Abstract bulk exchange interfaces for the bulk worker.

A bulk exchanger moves a whole batch of users to the store in a constant
number of round trips, never one statement per row. Concrete exchangers
(native COPY + composite-array parameter, or chunked multi-row statements for
stores without those primitives) implement the BulkExchanger protocol so the
cycle runner never depends on which one is active.

Contract shared by every implementation:
- `bulk_insert` transfers `id, name, email, created_date, is_active`.
- `bulk_update` transfers `id, name, email, is_active`, keyed by `id`;
  `created_date` is immutable and never sent.
- Each call is a single transaction: on failure nothing is applied and one
  classified `WorkerError` is raised.
- The returned count is the store-reported number of affected rows.
"""

from __future__ import annotations

import abc
from typing import Protocol, Sequence, runtime_checkable

from psycopg import Connection

from bulk_worker.domain.models import UserRecord

INSERT_COLUMNS = ("id", "name", "email", "created_date", "is_active")
UPDATE_COLUMNS = ("id", "name", "email", "is_active")


@runtime_checkable
class BulkExchanger(Protocol):
    """
    Common interface all bulk exchangers must implement.

    Attributes
    ----------
    name : str
        A short machine-friendly identifier (used by BULK_MODE).
    description : str
        A human-friendly summary of the approach.
    """

    name: str
    description: str

    def bulk_insert(self, conn: Connection, batch: Sequence[UserRecord]) -> int:
        """
        Insert the whole batch in one set-based transfer.

        Returns
        -------
        int
            Number of rows inserted.
        """
        ...

    def bulk_update(self, conn: Connection, batch: Sequence[UserRecord]) -> int:
        """
        Update the stored rows matching the batch ids in one set-based transfer.

        Returns
        -------
        int
            Number of rows updated.
        """
        ...


class AbstractBulkExchanger(abc.ABC):
    """
    Optional ABC helper for class-based implementations.

    Subclasses should set `name` and `description` and implement both transfers.
    """

    name: str
    description: str

    @abc.abstractmethod
    def bulk_insert(
        self, conn: Connection, batch: Sequence[UserRecord]
    ) -> int:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    def bulk_update(
        self, conn: Connection, batch: Sequence[UserRecord]
    ) -> int:  # pragma: no cover - interface only
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


__all__ = [
    "INSERT_COLUMNS",
    "UPDATE_COLUMNS",
    "AbstractBulkExchanger",
    "BulkExchanger",
]
