"""
Typed job records, payloads, and outcomes for the background queue.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class JobType(str, Enum):
    GENERATE_EMBEDDING = "generate-embedding"


class JobState(str, Enum):
    ENQUEUED = "enqueued"
    PROCESSING = "processing"
    RETRYING = "retrying"
    COMPLETED = "completed"
    DEAD_LETTERED = "dead_lettered"


# A dedup key may have at most one job in any of these states.
PENDING_STATES: tuple[JobState, ...] = (
    JobState.ENQUEUED,
    JobState.RETRYING,
    JobState.PROCESSING,
)
# The only states a job can be claimed from.
RUNNABLE_STATES: tuple[JobState, ...] = (JobState.ENQUEUED, JobState.RETRYING)
TERMINAL_STATES: tuple[JobState, ...] = (JobState.COMPLETED, JobState.DEAD_LETTERED)


class EmbeddingJobPayload(BaseModel):
    """Payload for computing a business embedding."""

    business_id: str = Field(min_length=1)
    text: str = Field(min_length=1)


PAYLOAD_MODELS: dict[JobType, type[BaseModel]] = {
    JobType.GENERATE_EMBEDDING: EmbeddingJobPayload,
}


def embedding_dedup_key(business_id: str) -> str:
    return f"embedding:{business_id}"


@dataclass(frozen=True)
class Job:
    """A queued unit of work as stored by the queue."""

    id: str
    job_type: JobType
    payload: BaseModel
    dedup_key: str
    state: JobState
    attempt: int
    retry_limit: int
    enqueued_at: datetime
    run_after: datetime
    updated_at: datetime
    last_error: str | None = None


@dataclass(frozen=True)
class EmbeddingJob:
    """View of a ``generate-embedding`` job with its typed payload fields."""

    job_id: str
    business_id: str
    text: str
    attempt: int
    enqueued_at: datetime

    @property
    def dedup_key(self) -> str:
        return embedding_dedup_key(self.business_id)

    @classmethod
    def from_job(cls, job: Job) -> "EmbeddingJob":
        if job.job_type is not JobType.GENERATE_EMBEDDING or not isinstance(
            job.payload, EmbeddingJobPayload
        ):
            raise TypeError(f"Job {job.id} is not an embedding job: {job.job_type}")
        return cls(
            job_id=job.id,
            business_id=job.payload.business_id,
            text=job.payload.text,
            attempt=job.attempt,
            enqueued_at=job.enqueued_at,
        )


@dataclass(frozen=True)
class HandlerResult:
    """What a handler reports back instead of raising."""

    error: BaseException | None = None
    note: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class JobOutcome:
    """Status of a job after one processing attempt."""

    job_id: str
    state: JobState
    attempt: int
    error: str | None = None
    retry_delay: float | None = None
    note: str | None = None
