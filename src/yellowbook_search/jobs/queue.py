"""
DuckDB-backed at-least-once job queue.

Jobs carry a deduplication key; at most one job per key may be pending
(enqueued, retrying, or processing) at a time, and later submissions for the
same key are coalesced. Failed jobs are retried with exponential backoff and
jitter until the retry limit, then moved to the dead-letter state where they
wait for a manual replay.
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
import threading
import uuid
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Awaitable, Callable

import duckdb
from pydantic import BaseModel

from ..errors import JobExhaustedError, is_retryable
from ..storage.base import utcnow
from ..storage.duckdb import open_connection
from .models import (
    PAYLOAD_MODELS,
    PENDING_STATES,
    RUNNABLE_STATES,
    HandlerResult,
    Job,
    JobOutcome,
    JobState,
    JobType,
)
from .retry import DEFAULT_RETRY_LIMIT, BackoffPolicy

logger = logging.getLogger(__name__)

JobHandler = Callable[[Job], Awaitable[HandlerResult]]

# A job still in ``processing`` after this long is assumed orphaned.
PROCESSING_LEASE = timedelta(minutes=15)

_JOB_COLUMNS = """
    id, job_type, payload_json, dedup_key, state, attempt, retry_limit,
    backoff_json, enqueued_at, run_after, updated_at, last_error
"""


def _placeholders(values: tuple[Any, ...] | list[Any]) -> str:
    return ", ".join(["?"] * len(values))


class DuckDBJobQueue:
    """Persistent job queue with dedup keys, backoff, and a dead-letter state."""

    def __init__(
        self,
        db_path: str,
        *,
        initialize: bool = True,
        connection: duckdb.DuckDBPyConnection | None = None,
        clock: Callable[[], datetime] = utcnow,
        rng: random.Random | None = None,
    ) -> None:
        self.db_path = str(Path(db_path).expanduser().resolve())
        if connection is not None:
            self._conn = connection
            self._owns_connection = False
        else:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            self._conn = open_connection(self.db_path)
            self._owns_connection = True
        self._clock = clock
        self._rng = rng or random.Random()
        self._lock = threading.Lock()
        if initialize:
            self.initialize()

    def close(self) -> None:
        """Close the DuckDB connection unless it is shared with a record store."""
        if self._owns_connection:
            self._conn.close()

    def initialize(self) -> None:
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS jobs (
                id VARCHAR PRIMARY KEY,
                job_type VARCHAR NOT NULL,
                payload_json VARCHAR NOT NULL,
                dedup_key VARCHAR NOT NULL,
                state VARCHAR NOT NULL,
                attempt INTEGER NOT NULL,
                retry_limit INTEGER NOT NULL,
                backoff_json VARCHAR NOT NULL,
                enqueued_at TIMESTAMP NOT NULL,
                run_after TIMESTAMP NOT NULL,
                started_at TIMESTAMP,
                finished_at TIMESTAMP,
                updated_at TIMESTAMP NOT NULL,
                last_error VARCHAR
            );
            """
        )

    def enqueue(
        self,
        job_type: JobType,
        payload: BaseModel,
        *,
        dedup_key: str,
        retry_limit: int = DEFAULT_RETRY_LIMIT,
        backoff: BackoffPolicy | None = None,
    ) -> str | None:
        """Submit a job. Return its id, or None when coalesced with a pending job."""
        model = PAYLOAD_MODELS[job_type]
        if not isinstance(payload, model):
            raise TypeError(
                f"{job_type.value} jobs take {model.__name__}, got {type(payload).__name__}"
            )
        policy = backoff or BackoffPolicy()
        job_id = str(uuid.uuid4())
        now = self._clock()

        with self._lock:
            self._conn.begin()
            try:
                existing = self._pending_job_id(dedup_key)
                if existing is not None:
                    self._conn.commit()
                    logger.info(
                        "Coalesced %s job for %s into pending job %s",
                        job_type.value,
                        dedup_key,
                        existing,
                    )
                    return None
                self._conn.execute(
                    """
                    INSERT INTO jobs (
                        id, job_type, payload_json, dedup_key, state, attempt,
                        retry_limit, backoff_json, enqueued_at, run_after, updated_at
                    )
                    VALUES (?, ?, ?, ?, ?, 1, ?, ?, ?, ?, ?)
                    """,
                    [
                        job_id,
                        job_type.value,
                        payload.model_dump_json(),
                        dedup_key,
                        JobState.ENQUEUED.value,
                        max(retry_limit, 1),
                        json.dumps(policy.to_dict(), sort_keys=True),
                        now,
                        now,
                        now,
                    ],
                )
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise

        logger.info("Enqueued %s job %s (%s)", job_type.value, job_id, dedup_key)
        return job_id

    def claim(self, job_type: JobType, *, limit: int = 1) -> list[Job]:
        """Move up to *limit* due jobs into ``processing`` and return them."""
        now = self._clock()
        with self._lock:
            self._conn.begin()
            try:
                states = [state.value for state in RUNNABLE_STATES]
                rows = self._conn.execute(
                    f"""
                    SELECT id
                    FROM jobs
                    WHERE job_type = ?
                      AND state IN ({_placeholders(states)})
                      AND run_after <= ?
                    ORDER BY run_after ASC, enqueued_at ASC
                    LIMIT ?
                    """,
                    [job_type.value, *states, now, max(limit, 1)],
                ).fetchall()
                ids = [str(row[0]) for row in rows]
                if ids:
                    self._conn.execute(
                        f"""
                        UPDATE jobs
                        SET state = ?, started_at = ?, updated_at = ?
                        WHERE id IN ({_placeholders(ids)})
                        """,
                        [JobState.PROCESSING.value, now, now, *ids],
                    )
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise
        return [job for job in (self.get_job(job_id) for job_id in ids) if job is not None]

    async def run_pending(
        self,
        job_type: JobType,
        handler: JobHandler,
        *,
        concurrency: int = 1,
    ) -> list[JobOutcome]:
        """Process every currently due job, at most *concurrency* at a time.

        Jobs whose processing lease expired (a worker died mid-run) are
        returned to the queue first, so every pass recovers them.
        """
        self.requeue_stale(job_type)
        outcomes: list[JobOutcome] = []
        while True:
            batch = self.claim(job_type, limit=max(concurrency, 1))
            if not batch:
                return outcomes
            results = await asyncio.gather(*(self._execute(job, handler) for job in batch))
            outcomes.extend(results)

    async def consume(
        self,
        job_type: JobType,
        handler: JobHandler,
        *,
        concurrency: int = 1,
        poll_interval: float = 2.0,
        stop_event: asyncio.Event | None = None,
    ) -> None:
        """Poll for due jobs until *stop_event* is set or the task is cancelled."""
        stop = stop_event or asyncio.Event()
        logger.info(
            "Consuming %s jobs (concurrency=%d, poll every %.1fs)",
            job_type.value,
            concurrency,
            poll_interval,
        )
        while not stop.is_set():
            await self.run_pending(job_type, handler, concurrency=concurrency)
            try:
                await asyncio.wait_for(stop.wait(), timeout=poll_interval)
            except TimeoutError:
                pass
        logger.info("Stopped consuming %s jobs", job_type.value)

    def requeue_stale(
        self,
        job_type: JobType,
        *,
        older_than: timedelta = PROCESSING_LEASE,
    ) -> int:
        """Return jobs stuck in ``processing`` (e.g. after a crash) to the queue."""
        now = self._clock()
        with self._lock:
            rows = self._conn.execute(
                """
                UPDATE jobs
                SET state = ?, run_after = ?, updated_at = ?
                WHERE job_type = ? AND state = ? AND started_at < ?
                RETURNING id
                """,
                [
                    JobState.RETRYING.value,
                    now,
                    now,
                    job_type.value,
                    JobState.PROCESSING.value,
                    now - older_than,
                ],
            ).fetchall()
        if rows:
            logger.warning("Requeued %d stale %s jobs", len(rows), job_type.value)
        return len(rows)

    def get_job(self, job_id: str) -> Job | None:
        row = self._conn.execute(
            f"SELECT {_JOB_COLUMNS} FROM jobs WHERE id = ? LIMIT 1",
            [job_id],
        ).fetchone()
        if row is None:
            return None
        return self._row_to_job(row)

    def list_jobs(
        self,
        *,
        state: JobState | None = None,
        job_type: JobType | None = None,
        limit: int = 100,
    ) -> list[Job]:
        sql = f"SELECT {_JOB_COLUMNS} FROM jobs WHERE TRUE"
        params: list[Any] = []
        if state is not None:
            sql += " AND state = ?"
            params.append(state.value)
        if job_type is not None:
            sql += " AND job_type = ?"
            params.append(job_type.value)
        sql += " ORDER BY enqueued_at DESC, id ASC LIMIT ?"
        params.append(max(limit, 1))
        rows = self._conn.execute(sql, params).fetchall()
        return [self._row_to_job(row) for row in rows]

    def count_jobs(self, *, state: JobState | None = None) -> int:
        sql = "SELECT COUNT(*) FROM jobs"
        params: list[Any] = []
        if state is not None:
            sql += " WHERE state = ?"
            params.append(state.value)
        row = self._conn.execute(sql, params).fetchone()
        return int(row[0]) if row else 0

    def replay(self, job_id: str) -> bool:
        """Re-enqueue a dead-lettered job with a fresh retry budget."""
        now = self._clock()
        with self._lock:
            job = self.get_job(job_id)
            if job is None or job.state is not JobState.DEAD_LETTERED:
                return False
            if self._pending_job_id(job.dedup_key) is not None:
                logger.info(
                    "Not replaying job %s: another job for %s is pending",
                    job_id,
                    job.dedup_key,
                )
                return False
            self._conn.execute(
                """
                UPDATE jobs
                SET state = ?, attempt = 1, enqueued_at = ?, run_after = ?,
                    started_at = NULL, finished_at = NULL, last_error = NULL,
                    updated_at = ?
                WHERE id = ?
                """,
                [JobState.ENQUEUED.value, now, now, now, job_id],
            )
        logger.info("Replayed dead-lettered job %s", job_id)
        return True

    def purge_finished(self, *, older_than: timedelta = timedelta(hours=1)) -> int:
        """Delete completed jobs that finished before ``now - older_than``.

        Dead-lettered jobs are kept for manual inspection.
        """
        cutoff = self._clock() - older_than
        with self._lock:
            rows = self._conn.execute(
                """
                DELETE FROM jobs
                WHERE state = ? AND finished_at < ?
                RETURNING id
                """,
                [JobState.COMPLETED.value, cutoff],
            ).fetchall()
        return len(rows)

    async def _execute(self, job: Job, handler: JobHandler) -> JobOutcome:
        logger.info(
            "Processing %s job %s (attempt %d/%d)",
            job.job_type.value,
            job.id,
            job.attempt,
            job.retry_limit,
        )
        try:
            result = await handler(job)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("Handler for job %s raised", job.id)
            result = HandlerResult(error=exc)
        return self._finish(job, result)

    def _finish(self, job: Job, result: HandlerResult) -> JobOutcome:
        now = self._clock()
        if result.ok:
            self._set_state(job.id, JobState.COMPLETED, now=now)
            logger.info("Job %s completed%s", job.id, f" ({result.note})" if result.note else "")
            return JobOutcome(
                job_id=job.id,
                state=JobState.COMPLETED,
                attempt=job.attempt,
                note=result.note,
            )

        error = result.error
        message = f"{type(error).__name__}: {error}"
        retryable = is_retryable(error)
        if retryable and job.attempt < job.retry_limit:
            delay = self._backoff_for(job).delay(job.attempt, self._rng)
            with self._lock:
                self._conn.execute(
                    """
                    UPDATE jobs
                    SET state = ?, attempt = attempt + 1, run_after = ?,
                        last_error = ?, updated_at = ?
                    WHERE id = ?
                    """,
                    [
                        JobState.RETRYING.value,
                        now + timedelta(seconds=delay),
                        message,
                        now,
                        job.id,
                    ],
                )
            logger.warning(
                "Job %s failed (attempt %d/%d), retrying in %.1fs: %s",
                job.id,
                job.attempt,
                job.retry_limit,
                delay,
                message,
            )
            return JobOutcome(
                job_id=job.id,
                state=JobState.RETRYING,
                attempt=job.attempt,
                error=message,
                retry_delay=delay,
            )

        self._set_state(job.id, JobState.DEAD_LETTERED, now=now, error=message)
        if retryable:
            logger.error("%s", JobExhaustedError(job.id, job.attempt, message))
        else:
            logger.error("Job %s failed permanently, dead-lettered: %s", job.id, message)
        return JobOutcome(
            job_id=job.id,
            state=JobState.DEAD_LETTERED,
            attempt=job.attempt,
            error=message,
        )

    def _set_state(
        self,
        job_id: str,
        state: JobState,
        *,
        now: datetime,
        error: str | None = None,
    ) -> None:
        sql = "UPDATE jobs SET state = ?, updated_at = ?, finished_at = ?"
        params: list[Any] = [state.value, now, now]
        if error is not None:
            sql += ", last_error = ?"
            params.append(error)
        sql += " WHERE id = ?"
        params.append(job_id)
        with self._lock:
            self._conn.execute(sql, params)

    def _pending_job_id(self, dedup_key: str) -> str | None:
        states = [state.value for state in PENDING_STATES]
        row = self._conn.execute(
            f"""
            SELECT id FROM jobs
            WHERE dedup_key = ? AND state IN ({_placeholders(states)})
            LIMIT 1
            """,
            [dedup_key, *states],
        ).fetchone()
        return str(row[0]) if row else None

    def _backoff_for(self, job: Job) -> BackoffPolicy:
        row = self._conn.execute(
            "SELECT backoff_json FROM jobs WHERE id = ?",
            [job.id],
        ).fetchone()
        if row is None:
            return BackoffPolicy()
        return BackoffPolicy.from_dict(json.loads(str(row[0])))

    @staticmethod
    def _row_to_job(row: tuple[Any, ...]) -> Job:
        job_type = JobType(str(row[1]))
        payload = PAYLOAD_MODELS[job_type].model_validate_json(str(row[2]))
        return Job(
            id=str(row[0]),
            job_type=job_type,
            payload=payload,
            dedup_key=str(row[3]),
            state=JobState(str(row[4])),
            attempt=int(row[5]),
            retry_limit=int(row[6]),
            enqueued_at=row[8],
            run_after=row[9],
            updated_at=row[10],
            last_error=str(row[11]) if row[11] is not None else None,
        )
