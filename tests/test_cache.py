"""Tests for the search response cache."""

from __future__ import annotations

from yellowbook_search.models import SearchResult
from yellowbook_search.search import ResponseCache, make_cache_key


class FakeTimer:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _result(answer: str = "answer") -> SearchResult:
    return SearchResult(answer=answer, businesses=[], cached=False)


def test_cache_key_normalizes_question_and_city() -> None:
    assert make_cache_key("  Italian Restaurants ", " Ulaanbaatar") == (
        "italian restaurants|ulaanbaatar"
    )
    assert make_cache_key("coffee", None) == "coffee|all"
    assert make_cache_key("coffee", "   ") == "coffee|all"


def test_entry_is_served_until_ttl_expires() -> None:
    timer = FakeTimer()
    cache = ResponseCache(ttl_seconds=3600, timer=timer)
    cache.put("coffee|all", _result())

    timer.now += 3599
    assert cache.get("coffee|all") is not None

    timer.now += 2
    assert cache.get("coffee|all") is None
    assert len(cache) == 0


def test_cache_stores_canonical_unflagged_result() -> None:
    cache = ResponseCache(ttl_seconds=60)
    cache.put("coffee|all", _result().as_cache_hit())

    stored = cache.get("coffee|all")

    assert stored is not None
    assert stored.cached is False


def test_cache_respects_max_entries() -> None:
    cache = ResponseCache(ttl_seconds=60, max_entries=2)
    for index in range(3):
        cache.put(f"q{index}|all", _result(str(index)))

    assert len(cache) == 2


def test_clear() -> None:
    cache = ResponseCache(ttl_seconds=60)
    cache.put("coffee|all", _result())
    cache.clear()
    assert cache.get("coffee|all") is None
