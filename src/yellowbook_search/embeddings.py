"""
Embedding provider for vector-based semantic search.

Wraps the Google GenAI embedding API for single-text embedding with a
configurable model and output dimension. Failures are translated into the
provider error taxonomy; retrying is left to callers.
"""

from __future__ import annotations

import os
from typing import Any

from .config import DEFAULT_EMBEDDING_DIM
from .errors import InvalidInputError, VectorError
from .genai_client import build_client, translate_error
from .vectors import Vector, parse_vector


_DEFAULT_MODEL = "gemini-embedding-001"


class EmbeddingProvider:
    """Generate text embeddings via Google GenAI."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str | None = None,
        dim: int | None = None,
        client: Any | None = None,
    ) -> None:
        self.model = model or os.getenv("YELLOWBOOK_EMBEDDING_MODEL", _DEFAULT_MODEL)
        self.dim = dim or int(
            os.getenv("YELLOWBOOK_EMBEDDING_DIM", str(DEFAULT_EMBEDDING_DIM))
        )
        self._client = build_client(api_key, client)

    async def embed(
        self,
        text: str,
        *,
        task_type: str = "RETRIEVAL_DOCUMENT",
    ) -> Vector:
        """Embed a single text and return a validated vector of ``dim`` floats."""
        if not text or not text.strip():
            raise InvalidInputError("Cannot embed empty text.")
        try:
            result = await self._client.aio.models.embed_content(
                model=self.model,
                contents=[text],
                config={
                    "task_type": task_type,
                    "output_dimensionality": self.dim,
                },
            )
        except Exception as exc:
            raise translate_error(exc) from exc

        if not result.embeddings:
            raise InvalidInputError("Embedding response contained no vectors.")
        try:
            return parse_vector(result.embeddings[0].values or (), dim=self.dim)
        except VectorError as exc:
            raise InvalidInputError(f"Malformed embedding response: {exc}") from exc

    async def embed_query(self, query: str) -> Vector:
        """Embed a search question for retrieval."""
        return await self.embed(query, task_type="RETRIEVAL_QUERY")
