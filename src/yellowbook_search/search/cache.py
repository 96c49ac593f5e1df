"""
TTL response cache for search results.
"""

from __future__ import annotations

import threading
import time
from typing import Callable

from cachetools import TTLCache

from ..config import DEFAULT_CACHE_MAX_ENTRIES, DEFAULT_CACHE_TTL_SECONDS
from ..models import SearchResult


def make_cache_key(question: str, city: str | None = None) -> str:
    """Normalize ``(question, city)`` into ``"<question>|<city or all>"``."""
    normalized_city = city.strip().lower() if city and city.strip() else "all"
    return f"{question.strip().lower()}|{normalized_city}"


class ResponseCache:
    """Thread-safe memo of canonical (unflagged) search results."""

    def __init__(
        self,
        *,
        ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        max_entries: int = DEFAULT_CACHE_MAX_ENTRIES,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._entries: TTLCache = TTLCache(
            maxsize=max_entries,
            ttl=ttl_seconds,
            timer=timer,
        )
        self._lock = threading.Lock()

    def get(self, key: str) -> SearchResult | None:
        with self._lock:
            return self._entries.get(key)

    def put(self, key: str, result: SearchResult) -> None:
        canonical = result if not result.cached else result.model_copy(update={"cached": False})
        with self._lock:
            self._entries[key] = canonical

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            self._entries.expire()
            return len(self._entries)
