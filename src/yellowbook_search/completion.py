"""
Completion provider used for answer synthesis.
"""

from __future__ import annotations

import os
from typing import Any

from .errors import InvalidInputError
from .genai_client import build_client, translate_error


_DEFAULT_MODEL = "gemini-2.5-flash"


class CompletionProvider:
    """Generate text completions via Google GenAI."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str | None = None,
        client: Any | None = None,
    ) -> None:
        self.model = model or os.getenv("YELLOWBOOK_COMPLETION_MODEL", _DEFAULT_MODEL)
        self._client = build_client(api_key, client)

    async def complete(self, prompt: str) -> str:
        try:
            response = await self._client.aio.models.generate_content(
                model=self.model,
                contents=prompt,
            )
        except Exception as exc:
            raise translate_error(exc) from exc
        text = response.text
        if text is None or not text.strip():
            raise InvalidInputError("Completion response contained no text.")
        return text.strip()
