"""
Storage interfaces and data models for directory records.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol

from ..vectors import Vector


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what DuckDB TIMESTAMP columns return."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class BusinessRecord:
    """A directory entry with an optional embedding vector."""

    id: str
    name: str
    description: str
    categories: tuple[str, ...]
    phone: str
    email: str
    website: str | None
    street: str
    city: str
    state: str
    postal_code: str
    country: str
    latitude: float
    longitude: float
    created_at: datetime
    updated_at: datetime
    embedding: Vector | None = None

    @property
    def has_embedding(self) -> bool:
        return self.embedding is not None


class RecordStore(Protocol):
    """Protocol for record persistence used by search and the job pipeline."""

    def list_records(
        self,
        city: str | None = None,
        *,
        embedded_only: bool = False,
    ) -> list[BusinessRecord]:
        """List records, optionally filtered by case-insensitive city substring."""

    def get_record(self, record_id: str) -> BusinessRecord | None:
        """Fetch a record by id."""

    def update_embedding(
        self,
        record_id: str,
        vector: Vector,
        *,
        modified_before: datetime,
    ) -> bool:
        """Write *vector* only if the record has none or was last modified at or
        before *modified_before*. Return True when the write was applied."""

    def create_record(self, fields: dict[str, Any]) -> BusinessRecord:
        """Insert a new record and return it."""

    def delete_record(self, record_id: str) -> bool:
        """Delete a record. Return True when a row was removed."""

    def list_records_missing_embedding(self) -> list[BusinessRecord]:
        """List records that still have no embedding."""
