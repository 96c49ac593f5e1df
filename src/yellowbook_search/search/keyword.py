"""
Keyword fallback matcher.

Scores records by lexical overlap with the question when the embedding path
is unavailable. Whole-word hits are worth more than substring hits, and a
verbatim phrase match earns a bonus.
"""

from __future__ import annotations

import re
import string

from ..storage import BusinessRecord
from .ranker import ScoredRecord, rank_records


STOP_WORDS: frozenset[str] = frozenset(
    {
        "where",
        "can",
        "find",
        "looking",
        "for",
        "need",
        "want",
        "good",
        "best",
        "the",
        "a",
        "an",
        "in",
        "at",
        "to",
        "from",
    }
)

WHOLE_WORD_POINTS = 3
SUBSTRING_POINTS = 1
PHRASE_BONUS = 5
MAX_RELEVANCE = 0.95

_STRIP_CHARS = string.punctuation + "“”‘’"


def extract_keywords(question: str) -> list[str]:
    """Lowercase, split on whitespace, and drop short tokens and stop words."""
    keywords: list[str] = []
    for token in question.lower().split():
        word = token.strip(_STRIP_CHARS)
        if len(word) <= 2 or word in STOP_WORDS:
            continue
        keywords.append(word)
    return keywords


def build_haystack(record: BusinessRecord) -> str:
    return " ".join(
        [record.name, record.description, record.city, *record.categories]
    ).lower()


def score_haystack(keywords: list[str], haystack: str) -> int:
    score = 0
    for keyword in keywords:
        if re.search(rf"\b{re.escape(keyword)}\b", haystack):
            score += WHOLE_WORD_POINTS
        elif keyword in haystack:
            score += SUBSTRING_POINTS
    if len(keywords) > 1 and " ".join(keywords) in haystack:
        score += PHRASE_BONUS
    return score


def normalize_score(score: int) -> float:
    return min(score / 10, MAX_RELEVANCE)


def match_keywords(
    question: str,
    candidates: list[BusinessRecord],
    *,
    limit: int = 5,
) -> list[ScoredRecord]:
    """Return up to *limit* candidates ranked by keyword score."""
    keywords = extract_keywords(question)
    if not keywords:
        return []

    scored: list[tuple[BusinessRecord, int]] = []
    for record in candidates:
        score = score_haystack(keywords, build_haystack(record))
        if score > 0:
            scored.append((record, score))

    # Rank on the raw score; normalization caps at 0.95 and would merge ties.
    ordered = sorted(scored, key=lambda item: -item[1])[:limit]
    return rank_records(
        [
            ScoredRecord(record=record, score=normalize_score(score), matched_by="keyword")
            for record, score in ordered
        ],
        limit=limit,
    )
