"""
Search orchestration: cache, retrieval, synthesis.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from ..config import DEFAULT_TOP_K
from ..errors import ProviderError, ValidationError, VectorError
from ..models import SearchResult
from ..storage import RecordStore
from ..vectors import Vector
from .cache import ResponseCache, make_cache_key
from .keyword import match_keywords
from .ranker import ScoredRecord
from .semantic import rank_by_similarity
from .synthesizer import AnswerSynthesizer

logger = logging.getLogger(__name__)

MIN_QUESTION_LENGTH = 3


class QueryEmbedder(Protocol):
    async def embed_query(self, query: str) -> Vector: ...


def validate_question(question: object) -> str:
    if not isinstance(question, str):
        raise ValidationError("Question is required and must be a string")
    trimmed = question.strip()
    if len(trimmed) < MIN_QUESTION_LENGTH:
        raise ValidationError(
            f"Question must be at least {MIN_QUESTION_LENGTH} characters long"
        )
    return trimmed


class SearchService:
    """Answer natural-language questions over the directory."""

    def __init__(
        self,
        store: RecordStore,
        embedder: QueryEmbedder,
        synthesizer: AnswerSynthesizer,
        cache: ResponseCache,
        *,
        top_k: int = DEFAULT_TOP_K,
        embed_timeout: float = 10.0,
    ) -> None:
        if top_k < 1:
            raise ValueError(f"top_k must be at least 1, got {top_k}")
        self.store = store
        self.embedder = embedder
        self.synthesizer = synthesizer
        self.cache = cache
        self.top_k = top_k
        self.embed_timeout = embed_timeout

    async def search(self, question: str, city: str | None = None) -> SearchResult:
        """Return an answer and ranked businesses, serving repeats from cache.

        Embedding failures degrade to keyword matching and completion failures
        degrade to a templated answer; only store errors propagate.
        """
        trimmed = validate_question(question)
        city_filter = city.strip() if city and city.strip() else None

        cache_key = make_cache_key(trimmed, city_filter)
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.info("Search cache hit for %r", cache_key)
            return cached.as_cache_hit()

        logger.info("Processing new search %r", cache_key)
        ranked, keyword_fallback = await self._retrieve(trimmed, city_filter)
        records = [item.record for item in ranked]
        answer = await self.synthesizer.synthesize(
            trimmed,
            records,
            keyword_fallback=keyword_fallback,
        )
        result = SearchResult(
            answer=answer,
            businesses=tuple(item.to_hit() for item in ranked),
            cached=False,
        )
        self.cache.put(cache_key, result)
        return result

    async def _retrieve(
        self, question: str, city: str | None
    ) -> tuple[list[ScoredRecord], bool]:
        try:
            query_vector = await asyncio.wait_for(
                self.embedder.embed_query(question),
                timeout=self.embed_timeout,
            )
            candidates = self.store.list_records(city, embedded_only=True)
            return rank_by_similarity(query_vector, candidates, limit=self.top_k), False
        except (ProviderError, TimeoutError, VectorError) as exc:
            logger.warning("Semantic retrieval unavailable, using keyword fallback: %s", exc)

        candidates = self.store.list_records(city)
        return match_keywords(question, candidates, limit=self.top_k), True
