"""Search components: retrieval, ranking, synthesis, and caching."""

from .cache import ResponseCache, make_cache_key
from .keyword import extract_keywords, match_keywords
from .ranker import ScoredRecord, rank_records
from .semantic import rank_by_similarity
from .service import SearchService, validate_question
from .synthesizer import AnswerSynthesizer

__all__ = [
    "ResponseCache",
    "make_cache_key",
    "extract_keywords",
    "match_keywords",
    "ScoredRecord",
    "rank_records",
    "rank_by_similarity",
    "SearchService",
    "validate_question",
    "AnswerSynthesizer",
]
