"""
Vector-based similarity ranking.

Scores stored record embeddings against a query vector via cosine
similarity. This ranker never falls back itself; the orchestrator switches
to keyword matching when the query embedding cannot be produced.
"""

from __future__ import annotations

from ..errors import VectorError
from ..storage import BusinessRecord
from ..vectors import Vector, cosine_similarity
from .ranker import ScoredRecord, rank_records


def rank_by_similarity(
    query_vector: Vector,
    candidates: list[BusinessRecord],
    *,
    limit: int = 5,
) -> list[ScoredRecord]:
    """Return the top *limit* embedded candidates by cosine similarity."""
    scored: list[ScoredRecord] = []
    for record in candidates:
        if record.embedding is None:
            continue
        try:
            similarity = cosine_similarity(query_vector, record.embedding)
        except VectorError as exc:
            raise VectorError(f"Cannot score business {record.id}: {exc}") from exc
        scored.append(ScoredRecord(record=record, score=similarity, matched_by="semantic"))
    return rank_records(scored, limit=limit)
