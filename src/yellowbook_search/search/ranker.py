"""
Ranking helpers shared by the semantic and keyword retrieval paths.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..models import BusinessHit, MatchedBy
from ..storage import BusinessRecord


@dataclass(frozen=True)
class ScoredRecord:
    """Retrieval candidate with a score on its path's own scale."""

    record: BusinessRecord
    score: float
    matched_by: MatchedBy

    def to_hit(self) -> BusinessHit:
        return BusinessHit.from_record(self.record, self.score, self.matched_by)


def rank_records(records: list[ScoredRecord], *, limit: int) -> list[ScoredRecord]:
    """Sort descending by score and apply limit.

    ``sorted`` is stable, so equal scores keep the store's natural order.
    """
    if limit < 1:
        raise ValueError(f"limit must be at least 1, got {limit}")
    ordered = sorted(records, key=lambda item: -item.score)
    return ordered[:limit]
