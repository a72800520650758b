"""
Synthetic user generation.

Stands in for whatever upstream domain produces new users. Generation is
pseudo-random with an optional seed for reproducible runs; identifiers are
always fresh `uuid4` values and every record is created active at "now" (UTC).
"""

from __future__ import annotations

import random
import uuid
from datetime import datetime, timezone
from typing import Callable, List, Optional

from bulk_worker.domain.models import UserRecord

FIRST_NAMES = [
    "Ada", "Alan", "Barbara", "Carlos", "Dana", "Edsger", "Fatima", "Grace",
    "Hiro", "Ines", "John", "Katherine", "Linus", "Margaret", "Nadia", "Omar",
    "Priya", "Quentin", "Radia", "Sofia", "Tim", "Uma", "Vint", "Wen",
]
LAST_NAMES = [
    "Lovelace", "Turing", "Liskov", "Silva", "Scott", "Dijkstra", "Khan", "Hopper",
    "Tanaka", "Moreno", "McCarthy", "Johnson", "Torvalds", "Hamilton", "Petrova",
    "Haddad", "Patel", "Blake", "Perlman", "Rossi", "Berners-Lee", "Rao", "Cerf", "Li",
]
EMAIL_DOMAINS = ["example.com", "example.org", "mail.test", "users.invalid"]


class UserGenerator:
    """
    Produce batches of new, active users.

    Parameters
    ----------
    seed : int, optional
        Seed for the name/email RNG. Ids are never seeded.
    clock : callable, optional
        Returns the creation timestamp; defaults to `datetime.now(timezone.utc)`.
    """

    def __init__(
        self,
        seed: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._rng = random.Random(seed)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _one(self, created_at: datetime) -> UserRecord:
        first = self._rng.choice(FIRST_NAMES)
        last = self._rng.choice(LAST_NAMES)
        user_id = uuid.uuid4()
        local = f"{first}.{last}".lower().replace("-", "")
        email = f"{local}.{user_id.hex[:8]}@{self._rng.choice(EMAIL_DOMAINS)}"
        return UserRecord(
            id=user_id,
            name=f"{first} {last}",
            email=email,
            created_at=created_at,
            is_active=True,
        )

    def generate(self, count: int) -> List[UserRecord]:
        """Return `count` new records sharing one creation timestamp."""
        if count < 0:
            raise ValueError(f"count must be >= 0, got {count}")
        created_at = self._clock()
        return [self._one(created_at) for _ in range(count)]


__all__ = ["UserGenerator"]
