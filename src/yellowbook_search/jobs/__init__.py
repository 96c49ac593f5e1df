"""Background job queue and the embedding worker."""

from .embedding_worker import EmbeddingJobHandler, JobWorker
from .models import (
    EmbeddingJob,
    EmbeddingJobPayload,
    HandlerResult,
    Job,
    JobOutcome,
    JobState,
    JobType,
    embedding_dedup_key,
)
from .queue import DuckDBJobQueue, JobHandler
from .retry import DEFAULT_RETRY_LIMIT, BackoffPolicy

__all__ = [
    "EmbeddingJobHandler",
    "JobWorker",
    "EmbeddingJob",
    "EmbeddingJobPayload",
    "HandlerResult",
    "Job",
    "JobOutcome",
    "JobState",
    "JobType",
    "embedding_dedup_key",
    "DuckDBJobQueue",
    "JobHandler",
    "DEFAULT_RETRY_LIMIT",
    "BackoffPolicy",
]
