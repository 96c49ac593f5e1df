"""Storage backends for directory records."""

from .base import BusinessRecord, RecordStore, utcnow
from .duckdb import DuckDBRecordStore

__all__ = [
    "BusinessRecord",
    "RecordStore",
    "utcnow",
    "DuckDBRecordStore",
]
