"""
FastAPI server for Yellow Book AI search.

Exposes the natural-language search endpoint, business creation (which
enqueues an embedding job), and job administration. The server owns the
DuckDB file while it runs, so the embedding worker runs as a background task
inside it (disable with ``YELLOWBOOK_RUN_WORKER=0``).
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Callable

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .config import Settings, configure_logging
from .errors import ValidationError
from .jobs import JobState
from .models import BusinessCreate, BusinessOut, SearchRequest
from .services import Services, build_services

logger = logging.getLogger(__name__)


def create_app(services_factory: Callable[[], Services] | None = None) -> FastAPI:
    """Create the API app; *services_factory* overrides the default wiring."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if services_factory is None:
            settings = Settings.from_env()
            configure_logging(settings.log_level)
            services = build_services(settings)
        else:
            services = services_factory()
        app.state.services = services

        stop = asyncio.Event()
        worker_task: asyncio.Task | None = None
        if services.settings.run_worker:
            worker_task = asyncio.create_task(services.worker.run(stop))
            logger.info("Embedding worker started inside the API process")
        try:
            yield
        finally:
            stop.set()
            if worker_task is not None:
                worker_task.cancel()
                try:
                    await worker_task
                except asyncio.CancelledError:
                    pass
            services.close()

    app = FastAPI(
        title="Yellow Book AI Search",
        description="Natural-language business search",
        lifespan=lifespan,
    )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        if errors:
            first = errors[0]
            field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
            message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
        else:
            message = "Invalid request"
        return JSONResponse({"error": "Bad Request", "message": message}, status_code=400)

    def _services(request: Request) -> Services:
        return request.app.state.services

    @app.post("/api/ai/yellow-books/search")
    async def ai_search(body: SearchRequest, request: Request):
        """Answer a question about the directory and return ranked businesses."""
        logger.info("AI search: %r%s", body.question, f" in {body.city}" if body.city else "")
        try:
            result = await _services(request).search.search(body.question, body.city)
        except ValidationError as exc:
            return JSONResponse(
                {"error": "Bad Request", "message": str(exc)}, status_code=400
            )
        except Exception as exc:
            logger.exception("AI search failed")
            return JSONResponse(
                {
                    "error": "Internal Server Error",
                    "message": "Failed to process AI search",
                    "details": str(exc),
                },
                status_code=500,
            )
        return result.model_dump()

    @app.post("/api/yellow-books", status_code=201)
    async def create_business(body: BusinessCreate, request: Request):
        """Create a business; its embedding is computed asynchronously."""
        try:
            record = _services(request).directory.create_business(body.to_fields())
        except ValidationError as exc:
            return JSONResponse(
                {"error": "Validation failed", "message": str(exc)}, status_code=400
            )
        except Exception as exc:
            logger.exception("Creating business failed")
            return JSONResponse(
                {
                    "error": "Internal Server Error",
                    "message": "Failed to create business",
                    "details": str(exc),
                },
                status_code=500,
            )
        return BusinessOut.from_record(record).model_dump(by_alias=True)

    @app.get("/api/jobs")
    async def list_jobs(request: Request, state: str | None = None, limit: int = 100):
        """List background jobs, optionally filtered by state."""
        try:
            job_state = JobState(state) if state else None
        except ValueError:
            allowed = ", ".join(s.value for s in JobState)
            return JSONResponse(
                {"error": f"Unknown job state {state!r}. Allowed: {allowed}"},
                status_code=400,
            )
        jobs = _services(request).queue.list_jobs(state=job_state, limit=limit)
        return {
            "jobs": [
                {
                    "id": job.id,
                    "job_type": job.job_type.value,
                    "dedup_key": job.dedup_key,
                    "state": job.state.value,
                    "attempt": job.attempt,
                    "retry_limit": job.retry_limit,
                    "enqueued_at": job.enqueued_at.isoformat(),
                    "run_after": job.run_after.isoformat(),
                    "last_error": job.last_error,
                    "payload": job.payload.model_dump(),
                }
                for job in jobs
            ]
        }

    @app.post("/api/jobs/{job_id}/replay")
    async def replay_job(job_id: str, request: Request):
        """Re-enqueue a dead-lettered job."""
        queue = _services(request).queue
        job = queue.get_job(job_id)
        if job is None:
            return JSONResponse({"error": "Job not found"}, status_code=404)
        if not queue.replay(job_id):
            if job.state is JobState.DEAD_LETTERED:
                message = f"Another job for {job.dedup_key} is already pending"
            else:
                message = f"Only dead-lettered jobs can be replayed (state: {job.state.value})"
            return JSONResponse({"error": message}, status_code=409)
        return {"id": job_id, "state": JobState.ENQUEUED.value}

    @app.post("/api/jobs/reembed")
    async def reembed_missing(request: Request):
        """Enqueue embedding jobs for businesses that have no vector yet."""
        job_ids = _services(request).directory.reembed_missing()
        return {"enqueued": len(job_ids), "job_ids": job_ids}

    @app.post("/api/jobs/purge")
    async def purge_jobs(request: Request, older_than_hours: float = 1.0):
        """Delete completed jobs older than *older_than_hours*; dead letters stay."""
        if older_than_hours < 0:
            return JSONResponse(
                {"error": "older_than_hours must not be negative"}, status_code=400
            )
        removed = _services(request).queue.purge_finished(
            older_than=timedelta(hours=older_than_hours)
        )
        return {"removed": removed}

    return app


app = create_app()


def run_server(host: str = "127.0.0.1", port: int = 8000):
    """Run the FastAPI server."""
    import uvicorn

    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run_server()
