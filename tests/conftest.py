from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
from google.genai.types import (
    Candidate,
    Content,
    GenerateContentResponse,
    Part,
)

from yellowbook_search.storage import BusinessRecord, DuckDBRecordStore, utcnow
from yellowbook_search.vectors import Vector

DIM = 4

ITALIAN: Vector = (1.0, 0.0, 0.0, 0.0)
COFFEE: Vector = (0.0, 1.0, 0.0, 0.0)
PLUMBING: Vector = (0.0, 0.0, 1.0, 0.0)
OTHER: Vector = (0.0, 0.0, 0.0, 1.0)


# ---------------------------------------------------------------------------
# GenAI client doubles
# ---------------------------------------------------------------------------


class MockModels:
    def __init__(self, text: str = "Luigi's Trattoria is a great choice.") -> None:
        self.text = text
        self.error: Exception | None = None
        self.calls: list[dict[str, Any]] = []

    async def generate_content(self, *, model: str, contents: Any) -> GenerateContentResponse:
        self.calls.append({"model": model, "contents": contents})
        if self.error is not None:
            raise self.error
        return GenerateContentResponse(
            candidates=[
                Candidate(
                    content=Content(
                        role="model",
                        parts=[Part.from_text(text=self.text)],
                    )
                )
            ]
        )


class MockAio:
    def __init__(self, models: Any) -> None:
        self.models = models


class MockGenAIClient:
    def __init__(self, models: Any | None = None) -> None:
        self.models = models or MockModels()
        self.aio = MockAio(self.models)


# ---------------------------------------------------------------------------
# Provider doubles used by the search service and the worker
# ---------------------------------------------------------------------------


def concept_vector(text: str) -> Vector:
    lowered = text.lower()
    if "italian" in lowered or "pizza" in lowered or "pasta" in lowered:
        return ITALIAN
    if "coffee" in lowered or "cafe" in lowered:
        return COFFEE
    if "plumb" in lowered:
        return PLUMBING
    return OTHER


class FakeEmbedder:
    """Maps texts onto a few fixed concept axes and records every call."""

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.errors: list[Exception] = []
        self.calls: list[tuple[str, str]] = []

    async def embed(self, text: str, *, task_type: str = "RETRIEVAL_DOCUMENT") -> Vector:
        self.calls.append((task_type, text))
        if self.errors:
            raise self.errors.pop(0)
        if self.error is not None:
            raise self.error
        return concept_vector(text)

    async def embed_query(self, query: str) -> Vector:
        return await self.embed(query, task_type="RETRIEVAL_QUERY")


class FakeCompleter:
    def __init__(self, answer: str = "Try Luigi's Trattoria.", error: Exception | None = None) -> None:
        self.answer = answer
        self.error = error
        self.prompts: list[str] = []

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.answer


# ---------------------------------------------------------------------------
# Store fixtures
# ---------------------------------------------------------------------------


def business_fields(**overrides: Any) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "name": "Luigi's Trattoria",
        "description": "Authentic Italian restaurant with handmade pasta",
        "categories": ["Restaurant", "Italian"],
        "phone": "+976 7011 2233",
        "email": "hello@luigis.mn",
        "website": "https://luigis.mn",
        "street": "Peace Avenue 12",
        "city": "Ulaanbaatar",
        "state": "Ulaanbaatar",
        "postal_code": "14200",
        "country": "Mongolia",
        "latitude": 47.918,
        "longitude": 106.917,
    }
    fields.update(overrides)
    return fields


def add_business(
    store: DuckDBRecordStore,
    vector: Vector | None = None,
    **overrides: Any,
) -> BusinessRecord:
    record = store.create_record(business_fields(**overrides))
    if vector is not None:
        store.update_embedding(record.id, vector, modified_before=utcnow())
        refreshed = store.get_record(record.id)
        assert refreshed is not None
        return refreshed
    return record


@pytest.fixture()
def db_path(tmp_path: Path) -> str:
    return str(tmp_path / "directory.duckdb")


@pytest.fixture()
def store(db_path: str):
    record_store = DuckDBRecordStore(db_path, embedding_dim=DIM)
    yield record_store
    record_store.close()


@pytest.fixture()
def directory_records(store: DuckDBRecordStore) -> dict[str, BusinessRecord]:
    """Two Ulaanbaatar businesses and one in Darkhan, all embedded."""
    return {
        "luigi": add_business(store, ITALIAN),
        "nomad": add_business(
            store,
            COFFEE,
            name="Nomad Coffee",
            description="Specialty coffee roasters and espresso bar",
            categories=["Cafe"],
            email="cups@nomad.mn",
            website=None,
        ),
        "roma": add_business(
            store,
            ITALIAN,
            name="Roma Pizzeria",
            description="Wood-fired Italian pizza",
            categories=["Restaurant", "Italian"],
            city="Darkhan",
            state="Darkhan-Uul",
            email="ciao@roma.mn",
        ),
    }
