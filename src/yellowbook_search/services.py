"""
Explicit wiring of the store, queue, providers, and services.

Callers (API, CLI, tests) construct a ``Services`` container and pass it
around instead of relying on module-level singletons.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .completion import CompletionProvider
from .config import Settings
from .directory import DirectoryService
from .embeddings import EmbeddingProvider
from .jobs import DuckDBJobQueue, EmbeddingJobHandler, JobType, JobWorker
from .search import AnswerSynthesizer, ResponseCache, SearchService
from .storage import DuckDBRecordStore


@dataclass
class Services:
    settings: Settings
    store: DuckDBRecordStore
    queue: DuckDBJobQueue
    search: SearchService
    directory: DirectoryService
    worker: JobWorker

    def close(self) -> None:
        self.queue.close()
        self.store.close()


def build_services(
    settings: Settings | None = None,
    *,
    embedder: Any | None = None,
    completer: Any | None = None,
    queue: DuckDBJobQueue | None = None,
) -> Services:
    """Build the full object graph. Providers may be injected for testing."""
    resolved = settings or Settings.from_env()
    store = DuckDBRecordStore(resolved.db_path, embedding_dim=resolved.embedding_dim)
    job_queue = queue or DuckDBJobQueue(resolved.db_path, connection=store.connection)
    embedding_provider = embedder or EmbeddingProvider(dim=resolved.embedding_dim)
    completion_provider = completer or CompletionProvider()

    search = SearchService(
        store,
        embedding_provider,
        AnswerSynthesizer(completion_provider, timeout=resolved.completion_timeout),
        ResponseCache(
            ttl_seconds=resolved.cache_ttl_seconds,
            max_entries=resolved.cache_max_entries,
        ),
        top_k=resolved.top_k,
        embed_timeout=resolved.embed_timeout,
    )
    worker = JobWorker(
        job_queue,
        {
            JobType.GENERATE_EMBEDDING: EmbeddingJobHandler(
                store,
                embedding_provider,
                timeout=resolved.embed_timeout,
            )
        },
        concurrency=resolved.worker_concurrency,
        poll_interval=resolved.worker_poll_interval,
    )
    return Services(
        settings=resolved,
        store=store,
        queue=job_queue,
        search=search,
        directory=DirectoryService(store, job_queue),
        worker=worker,
    )
