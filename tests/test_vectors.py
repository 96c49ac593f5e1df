"""Tests for vector validation and cosine similarity."""

import math

import pytest

from yellowbook_search.errors import VectorError
from yellowbook_search.vectors import cosine_similarity, magnitude, parse_vector


def test_identical_vectors_have_similarity_one() -> None:
    v = (0.3, -1.2, 4.0, 0.5)
    assert cosine_similarity(v, v) == pytest.approx(1.0)
    assert cosine_similarity(v, v) <= 1.0


def test_opposite_vectors_have_similarity_minus_one() -> None:
    v = (1.0, 2.0, 3.0)
    assert cosine_similarity(v, tuple(-x for x in v)) == pytest.approx(-1.0)


def test_orthogonal_vectors_have_similarity_zero() -> None:
    assert cosine_similarity((1.0, 0.0), (0.0, 5.0)) == pytest.approx(0.0)


def test_similarity_ignores_scale() -> None:
    assert cosine_similarity((1.0, 1.0), (10.0, 10.0)) == pytest.approx(1.0)


def test_dimension_mismatch_raises() -> None:
    with pytest.raises(VectorError, match="dimensions differ"):
        cosine_similarity((1.0, 0.0), (1.0, 0.0, 0.0))


def test_zero_magnitude_raises() -> None:
    with pytest.raises(VectorError, match="zero-magnitude"):
        cosine_similarity((0.0, 0.0), (1.0, 0.0))


def test_magnitude() -> None:
    assert magnitude((3.0, 4.0)) == pytest.approx(5.0)


def test_parse_vector_accepts_lists_and_ints() -> None:
    assert parse_vector([1, 2, 3], dim=3) == (1.0, 2.0, 3.0)


def test_parse_vector_rejects_wrong_dimension() -> None:
    with pytest.raises(VectorError, match="dimension 4"):
        parse_vector([1.0, 2.0], dim=4)


def test_parse_vector_rejects_non_finite() -> None:
    with pytest.raises(VectorError, match="non-finite"):
        parse_vector([1.0, math.nan], dim=2)
    with pytest.raises(VectorError):
        parse_vector([math.inf, 1.0], dim=2)


def test_parse_vector_rejects_non_numeric() -> None:
    with pytest.raises(VectorError, match="non-numeric"):
        parse_vector(["a", 1.0], dim=2)
