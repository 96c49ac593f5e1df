"""
Shared Google GenAI client construction and error translation.
"""

from __future__ import annotations

import os
from typing import Any

import httpx
from google.genai import Client as GenAIClient
from google.genai import errors as genai_errors

from .errors import (
    ProviderConnectionError,
    ProviderError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    provider_error_from_status,
)


def build_client(api_key: str | None = None, client: Any | None = None) -> Any:
    """Return *client* or a GenAI client built from the API key."""
    if client is not None:
        return client
    resolved_key = api_key or os.getenv("GOOGLE_API_KEY")
    if resolved_key is None:
        raise ValueError(
            "GOOGLE_API_KEY not found. "
            "Provide api_key or set the environment variable."
        )
    return GenAIClient(api_key=resolved_key)


def translate_error(exc: Exception) -> ProviderError:
    """Map GenAI and transport exceptions onto the provider error taxonomy."""
    if isinstance(exc, ProviderError):
        return exc
    if isinstance(exc, genai_errors.APIError):
        message = exc.message or str(exc)
        return provider_error_from_status(exc.code, message)
    if isinstance(exc, (httpx.TimeoutException, TimeoutError)):
        return ProviderTimeoutError(f"Provider call timed out: {exc}")
    if isinstance(exc, (httpx.ConnectError, ConnectionError)):
        return ProviderConnectionError(f"Could not reach provider: {exc}")
    return ProviderUnavailableError(f"Unexpected provider failure: {exc}")
