"""
Fixed-dimension embedding vectors and cosine similarity.
"""

from __future__ import annotations

import math
from typing import Any, Iterable

from .errors import VectorError


Vector = tuple[float, ...]


def parse_vector(raw: Iterable[Any], *, dim: int) -> Vector:
    """Validate *raw* as a vector of exactly *dim* finite floats."""
    try:
        values = tuple(float(v) for v in raw)
    except (TypeError, ValueError) as exc:
        raise VectorError(f"Vector contains non-numeric components: {exc}") from exc
    if len(values) != dim:
        raise VectorError(f"Expected a vector of dimension {dim}, got {len(values)}")
    if not all(math.isfinite(v) for v in values):
        raise VectorError("Vector contains non-finite components")
    return values


def magnitude(vector: Vector) -> float:
    return math.sqrt(math.fsum(v * v for v in vector))


def cosine_similarity(a: Vector, b: Vector) -> float:
    """Return dot(a, b) / (|a| * |b|).

    Raises VectorError when the dimensions differ or either vector has zero
    magnitude; the similarity is undefined in both cases.
    """
    if len(a) != len(b):
        raise VectorError(f"Vector dimensions differ: {len(a)} != {len(b)}")
    norm_a = magnitude(a)
    norm_b = magnitude(b)
    if norm_a == 0.0 or norm_b == 0.0:
        raise VectorError("Cosine similarity is undefined for zero-magnitude vectors")
    dot = math.fsum(x * y for x, y in zip(a, b))
    # Clamp float drift so identical vectors never exceed 1.0.
    return max(-1.0, min(1.0, dot / (norm_a * norm_b)))
