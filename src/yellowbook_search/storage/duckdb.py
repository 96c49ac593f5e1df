"""
DuckDB storage backend for directory records.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any

import duckdb

from ..config import DEFAULT_EMBEDDING_DIM
from ..errors import DatabaseLockedError, ValidationError, VectorError
from ..vectors import Vector, parse_vector
from .base import BusinessRecord, utcnow

logger = logging.getLogger(__name__)

_REQUIRED_TEXT_FIELDS: tuple[str, ...] = (
    "name",
    "description",
    "phone",
    "email",
    "street",
    "city",
    "state",
    "postal_code",
    "country",
)

_RECORD_COLUMNS = """
    id, name, description, categories, phone, email, website,
    street, city, state, postal_code, country, latitude, longitude,
    created_at, updated_at, embedding
"""


def open_connection(
    db_path: str, *, read_only: bool = False
) -> duckdb.DuckDBPyConnection:
    """Connect to *db_path*, reporting a held file lock as ``DatabaseLockedError``.

    DuckDB allows a single read-write process per file, so a running API
    server (which also runs the worker) owns the database exclusively.
    """
    try:
        return duckdb.connect(db_path, read_only=read_only)
    except duckdb.IOException as exc:
        if "lock" not in str(exc).lower():
            raise
        raise DatabaseLockedError(db_path, str(exc)) from exc


class DuckDBRecordStore:
    """DuckDB-backed persistence for business records and their embeddings."""

    def __init__(
        self,
        db_path: str,
        *,
        embedding_dim: int = DEFAULT_EMBEDDING_DIM,
        read_only: bool = False,
        initialize: bool = True,
    ) -> None:
        self.db_path = str(Path(db_path).expanduser().resolve())
        self.embedding_dim = embedding_dim
        self.read_only = read_only
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = open_connection(self.db_path, read_only=read_only)
        if initialize and not read_only:
            self.initialize()

    @property
    def connection(self) -> duckdb.DuckDBPyConnection:
        """The open connection, shareable with a job queue on the same file."""
        return self._conn

    def close(self) -> None:
        """Close the underlying DuckDB connection."""
        self._conn.close()

    def initialize(self) -> None:
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS businesses (
                id VARCHAR PRIMARY KEY,
                name VARCHAR NOT NULL,
                description VARCHAR NOT NULL,
                categories VARCHAR[] NOT NULL,
                phone VARCHAR NOT NULL,
                email VARCHAR NOT NULL,
                website VARCHAR,
                street VARCHAR NOT NULL,
                city VARCHAR NOT NULL,
                state VARCHAR NOT NULL,
                postal_code VARCHAR NOT NULL,
                country VARCHAR NOT NULL,
                latitude DOUBLE NOT NULL,
                longitude DOUBLE NOT NULL,
                created_at TIMESTAMP NOT NULL,
                updated_at TIMESTAMP NOT NULL,
                embedding DOUBLE[]
            );
            """
        )

    def create_record(self, fields: dict[str, Any]) -> BusinessRecord:
        missing = [
            name for name in _REQUIRED_TEXT_FIELDS if not str(fields.get(name) or "").strip()
        ]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        categories = [str(c).strip() for c in fields.get("categories") or [] if str(c).strip()]
        if not categories:
            raise ValidationError("A business needs at least one category.")

        record_id = str(fields.get("id") or uuid.uuid4())
        now = utcnow()
        self._conn.execute(
            """
            INSERT INTO businesses (
                id, name, description, categories, phone, email, website,
                street, city, state, postal_code, country, latitude, longitude,
                created_at, updated_at, embedding
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, NULL)
            """,
            [
                record_id,
                str(fields["name"]).strip(),
                str(fields["description"]).strip(),
                categories,
                str(fields["phone"]).strip(),
                str(fields["email"]).strip(),
                fields.get("website"),
                str(fields["street"]).strip(),
                str(fields["city"]).strip(),
                str(fields["state"]).strip(),
                str(fields["postal_code"]).strip(),
                str(fields["country"]).strip(),
                float(fields.get("latitude", 0.0)),
                float(fields.get("longitude", 0.0)),
                now,
                now,
            ],
        )
        record = self.get_record(record_id)
        if record is None:
            raise RuntimeError(f"Failed to create business record: {record_id}")
        return record

    def get_record(self, record_id: str) -> BusinessRecord | None:
        row = self._conn.execute(
            f"SELECT {_RECORD_COLUMNS} FROM businesses WHERE id = ? LIMIT 1",
            [record_id],
        ).fetchone()
        if row is None:
            return None
        return self._row_to_record(row)

    def list_records(
        self,
        city: str | None = None,
        *,
        embedded_only: bool = False,
    ) -> list[BusinessRecord]:
        sql = f"SELECT {_RECORD_COLUMNS} FROM businesses WHERE TRUE"
        params: list[Any] = []
        if city is not None and city.strip():
            sql += " AND contains(lower(city), lower(?))"
            params.append(city.strip())
        if embedded_only:
            sql += " AND embedding IS NOT NULL"
        sql += " ORDER BY created_at ASC, id ASC"
        rows = self._conn.execute(sql, params).fetchall()
        records = [self._row_to_record(row) for row in rows]
        if embedded_only:
            # Rows whose stored vector failed validation come back without one.
            records = [record for record in records if record.has_embedding]
        return records

    def list_records_missing_embedding(self) -> list[BusinessRecord]:
        rows = self._conn.execute(
            f"""
            SELECT {_RECORD_COLUMNS}
            FROM businesses
            WHERE embedding IS NULL
            ORDER BY created_at ASC, id ASC
            """
        ).fetchall()
        return [self._row_to_record(row) for row in rows]

    def update_embedding(
        self,
        record_id: str,
        vector: Vector,
        *,
        modified_before: datetime,
    ) -> bool:
        validated = parse_vector(vector, dim=self.embedding_dim)
        rows = self._conn.execute(
            """
            UPDATE businesses
            SET embedding = ?, updated_at = ?
            WHERE id = ?
              AND (embedding IS NULL OR updated_at <= ?)
            RETURNING id
            """,
            [list(validated), utcnow(), record_id, modified_before],
        ).fetchall()
        return len(rows) > 0

    def delete_record(self, record_id: str) -> bool:
        rows = self._conn.execute(
            "DELETE FROM businesses WHERE id = ? RETURNING id",
            [record_id],
        ).fetchall()
        return len(rows) > 0

    def count_records(self, *, embedded_only: bool = False) -> int:
        sql = "SELECT COUNT(*) FROM businesses"
        if embedded_only:
            sql += " WHERE embedding IS NOT NULL"
        row = self._conn.execute(sql).fetchone()
        return int(row[0]) if row else 0

    def _row_to_record(self, row: tuple[Any, ...]) -> BusinessRecord:
        embedding: Vector | None = None
        if row[16] is not None:
            try:
                embedding = parse_vector(row[16], dim=self.embedding_dim)
            except VectorError as exc:
                logger.warning(
                    "Ignoring malformed stored embedding for business %s: %s",
                    row[0],
                    exc,
                )
        return BusinessRecord(
            id=str(row[0]),
            name=str(row[1]),
            description=str(row[2]),
            categories=tuple(str(c) for c in row[3] or ()),
            phone=str(row[4]),
            email=str(row[5]),
            website=str(row[6]) if row[6] is not None else None,
            street=str(row[7]),
            city=str(row[8]),
            state=str(row[9]),
            postal_code=str(row[10]),
            country=str(row[11]),
            latitude=float(row[12]),
            longitude=float(row[13]),
            created_at=row[14],
            updated_at=row[15],
            embedding=embedding,
        )
