"""
Embedding job handler and worker loop.

For each ``generate-embedding`` job: reload the business, skip if its vector
is already newer than the job, embed the job text, and write the vector back
only if no newer update landed in the meantime.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from ..errors import NotFoundError
from ..storage import RecordStore
from ..vectors import Vector
from .models import EmbeddingJob, HandlerResult, Job, JobOutcome, JobType
from .queue import DuckDBJobQueue, JobHandler

logger = logging.getLogger(__name__)


class TextEmbedder(Protocol):
    async def embed(self, text: str) -> Vector: ...


class EmbeddingJobHandler:
    """Compute and conditionally persist the embedding for one business."""

    def __init__(
        self,
        store: RecordStore,
        embedder: TextEmbedder,
        *,
        timeout: float = 30.0,
    ) -> None:
        self.store = store
        self.embedder = embedder
        self.timeout = timeout

    async def __call__(self, job: Job) -> HandlerResult:
        embedding_job = EmbeddingJob.from_job(job)
        try:
            return await self.process(embedding_job)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            return HandlerResult(error=exc)

    async def process(self, job: EmbeddingJob) -> HandlerResult:
        record = self.store.get_record(job.business_id)
        if record is None:
            raise NotFoundError(f"Business {job.business_id} no longer exists")

        if record.has_embedding and record.updated_at > job.enqueued_at:
            logger.info(
                "Skipping job %s: business %s was embedded at %s, after enqueue at %s",
                job.job_id,
                job.business_id,
                record.updated_at.isoformat(),
                job.enqueued_at.isoformat(),
            )
            return HandlerResult(note="already embedded")

        vector = await asyncio.wait_for(self.embedder.embed(job.text), timeout=self.timeout)

        applied = self.store.update_embedding(
            job.business_id,
            vector,
            modified_before=job.enqueued_at,
        )
        if not applied:
            # Either a newer update won the race or the business was deleted.
            if self.store.get_record(job.business_id) is None:
                raise NotFoundError(f"Business {job.business_id} no longer exists")
            logger.info(
                "Job %s: business %s changed after enqueue, vector not written",
                job.job_id,
                job.business_id,
            )
            return HandlerResult(note="superseded by newer update")

        logger.info(
            "Stored %d-dimensional embedding for business %s",
            len(vector),
            job.business_id,
        )
        return HandlerResult(note="embedded")


class JobWorker:
    """Dispatch claimed jobs to the handler registered for their type."""

    def __init__(
        self,
        queue: DuckDBJobQueue,
        handlers: dict[JobType, JobHandler],
        *,
        concurrency: int = 1,
        poll_interval: float = 2.0,
    ) -> None:
        self.queue = queue
        self.handlers = handlers
        self.concurrency = max(concurrency, 1)
        self.poll_interval = poll_interval

    async def run_once(self) -> list[JobOutcome]:
        """Process every job that is currently due, then return."""
        outcomes: list[JobOutcome] = []
        for job_type, handler in self.handlers.items():
            outcomes.extend(
                await self.queue.run_pending(
                    job_type,
                    handler,
                    concurrency=self.concurrency,
                )
            )
        return outcomes

    async def run(self, stop_event: asyncio.Event | None = None) -> None:
        """Consume all registered job types until stopped or cancelled."""
        stop = stop_event or asyncio.Event()
        await asyncio.gather(
            *(
                self.queue.consume(
                    job_type,
                    handler,
                    concurrency=self.concurrency,
                    poll_interval=self.poll_interval,
                    stop_event=stop,
                )
                for job_type, handler in self.handlers.items()
            )
        )
