"""
Directory record creation and the embedding enqueue it triggers.
"""

from __future__ import annotations

import logging
from typing import Any

from .jobs import (
    DEFAULT_RETRY_LIMIT,
    BackoffPolicy,
    DuckDBJobQueue,
    EmbeddingJobPayload,
    JobType,
    embedding_dedup_key,
)
from .storage import BusinessRecord, RecordStore

logger = logging.getLogger(__name__)


def build_embedding_text(record: BusinessRecord) -> str:
    """Text embedded for a business: name, description, categories, city."""
    parts = [record.name, record.description, " ".join(record.categories), record.city]
    return " ".join(part.strip() for part in parts if part and part.strip())


class DirectoryService:
    """Create businesses and keep their embeddings flowing through the queue."""

    def __init__(
        self,
        store: RecordStore,
        queue: DuckDBJobQueue,
        *,
        retry_limit: int = DEFAULT_RETRY_LIMIT,
        backoff: BackoffPolicy | None = None,
    ) -> None:
        self.store = store
        self.queue = queue
        self.retry_limit = retry_limit
        self.backoff = backoff or BackoffPolicy()

    def create_business(self, fields: dict[str, Any]) -> BusinessRecord:
        """Insert a business and enqueue its embedding job.

        A failed enqueue is logged and never undoes the insert; the record
        stays searchable by keyword until ``reembed_missing`` picks it up.
        """
        record = self.store.create_record(fields)
        self.enqueue_embedding(record)
        return record

    def enqueue_embedding(self, record: BusinessRecord) -> str | None:
        try:
            return self.queue.enqueue(
                JobType.GENERATE_EMBEDDING,
                EmbeddingJobPayload(
                    business_id=record.id,
                    text=build_embedding_text(record),
                ),
                dedup_key=embedding_dedup_key(record.id),
                retry_limit=self.retry_limit,
                backoff=self.backoff,
            )
        except Exception:
            logger.exception("Failed to enqueue embedding job for business %s", record.id)
            return None

    def reembed_missing(self) -> list[str]:
        """Enqueue jobs for every business that still has no embedding."""
        job_ids: list[str] = []
        for record in self.store.list_records_missing_embedding():
            job_id = self.enqueue_embedding(record)
            if job_id is not None:
                job_ids.append(job_id)
        logger.info("Enqueued %d embedding jobs for businesses without vectors", len(job_ids))
        return job_ids
