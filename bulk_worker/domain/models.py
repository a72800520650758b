"""
Domain models for the bulk worker.

Defines the user record schema aligned with `db/init.sql` plus the value
objects describing retry attempts and cycle outcomes. UserRecord is used for
validation, serialization and type hints across the store, exchangers and
export sinks; the outcome objects are consumed only by logging and the CLI.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

# External field names, in export order.
EXPORT_FIELDS = ("Id", "Name", "Email", "CreatedDate", "IsActive")


class UserRecord(BaseModel):
    """
    Representation of a single row in the `users` table.
    """

    id: UUID = Field(..., alias="Id", description="Primary key (uuid).")
    name: str = Field(..., alias="Name", description="Display name.")
    email: str = Field(..., alias="Email", description="Contact email.")
    created_at: datetime = Field(
        ..., alias="CreatedDate", description="Row creation timestamp (UTC)."
    )
    is_active: bool = Field(True, alias="IsActive", description="Whether the user is active.")

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        arbitrary_types_allowed=False,
    )

    @field_validator("created_at")
    @classmethod
    def _ensure_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def renamed(self, suffix: str) -> "UserRecord":
        """Return a copy with `suffix` appended to the name; other fields unchanged."""
        return self.model_copy(update={"name": f"{self.name}{suffix}"})

    def export_row(self) -> Dict[str, Any]:
        """JSON-ready mapping keyed by the external field names."""
        return self.model_dump(mode="json", by_alias=True)

    def insert_values(self) -> tuple:
        return (self.id, self.name, self.email, self.created_at, self.is_active)

    def update_values(self) -> tuple:
        return (self.id, self.name, self.email, self.is_active)


@dataclass(frozen=True)
class RetryDecision:
    """
    One scheduled retry: which attempt failed, why, and how long we wait.
    """

    attempt_number: int
    delay_before_next_attempt: float
    triggering_error: BaseException


@dataclass
class CycleOutcome:
    """
    Terminal summary of one cycle.

    `error` is the first unrecoverable error (None on success). Export
    failures do not fail the cycle; they are listed in `export_failures`.
    """

    succeeded: bool
    attempts: int = 0
    error: Optional[BaseException] = None
    rows_read: int = 0
    rows_inserted: int = 0
    rows_updated: int = 0
    rows_exported: int = 0
    handler_failures: int = 0
    export_failures: Dict[str, str] = field(default_factory=dict)
    duration_seconds: float = 0.0

    @classmethod
    def failure(cls, error: BaseException, attempts: int) -> "CycleOutcome":
        return cls(succeeded=False, attempts=attempts, error=error)

    def with_attempts(self, attempts: int) -> "CycleOutcome":
        return replace(self, attempts=attempts)

    def as_log_fields(self) -> Dict[str, Any]:
        """Flatten into `extra=` fields for structured logging."""
        return {
            "succeeded": self.succeeded,
            "attempts": self.attempts,
            "error": repr(self.error) if self.error is not None else None,
            "error_type": type(self.error).__name__ if self.error is not None else None,
            "rows_read": self.rows_read,
            "rows_inserted": self.rows_inserted,
            "rows_updated": self.rows_updated,
            "rows_exported": self.rows_exported,
            "handler_failures": self.handler_failures,
            "export_failures": dict(self.export_failures),
            "duration_seconds": round(self.duration_seconds, 3),
        }


__all__ = ["EXPORT_FIELDS", "UserRecord", "RetryDecision", "CycleOutcome"]
