"""
Yellow Book AI search - natural-language questions over a business directory.

This package answers free-text questions with semantic retrieval over stored
business embeddings, falls back to keyword matching when the embedding
provider is unavailable, and keeps embeddings fresh through a persistent
background job queue.

Example usage:
    >>> from yellowbook_search import build_services
    >>> services = build_services()
    >>> result = await services.search.search("Italian restaurants", "Ulaanbaatar")
"""

from .directory import DirectoryService, build_embedding_text
from .errors import (
    DatabaseLockedError,
    JobExhaustedError,
    NotFoundError,
    ProviderError,
    ValidationError,
    VectorError,
)
from .models import BusinessHit, SearchResult
from .search import SearchService
from .services import Services, build_services

__all__ = [
    "DirectoryService",
    "build_embedding_text",
    "DatabaseLockedError",
    "JobExhaustedError",
    "NotFoundError",
    "ProviderError",
    "ValidationError",
    "VectorError",
    "BusinessHit",
    "SearchResult",
    "SearchService",
    "Services",
    "build_services",
]
