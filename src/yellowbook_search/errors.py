"""
Error taxonomy for search and the embedding job pipeline.
"""

from __future__ import annotations


class YellowBookError(Exception):
    """Base class for all errors raised by this package."""


class ValidationError(YellowBookError, ValueError):
    """Raised when a search query or record payload is malformed."""


class NotFoundError(YellowBookError):
    """Raised when a record disappeared before it could be processed."""


class VectorError(YellowBookError, ValueError):
    """Raised for malformed vectors or undefined similarity."""


class DatabaseLockedError(YellowBookError):
    """Raised when another process holds the write lock on the DuckDB file."""

    def __init__(self, db_path: str, reason: str = "") -> None:
        super().__init__(
            f"Database {db_path} is locked by another process"
            + (f" ({reason})" if reason else "")
        )
        self.db_path = db_path


class JobExhaustedError(YellowBookError):
    """Raised (and logged) when a job spent its whole retry budget."""

    def __init__(self, job_id: str, attempts: int, last_error: str | None) -> None:
        super().__init__(
            f"Job {job_id} exhausted its retry budget after {attempts} attempts: "
            f"{last_error or 'unknown error'}"
        )
        self.job_id = job_id
        self.attempts = attempts
        self.last_error = last_error


class ProviderError(YellowBookError):
    """Failure of the embedding or completion provider."""

    retryable: bool = True

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RateLimitedError(ProviderError):
    retryable = True


class ProviderUnavailableError(ProviderError):
    retryable = True


class ProviderTimeoutError(ProviderError):
    retryable = True


class ProviderConnectionError(ProviderError):
    retryable = True


class InvalidInputError(ProviderError):
    retryable = False


class UnauthorizedError(ProviderError):
    retryable = False


class ModelNotFoundError(ProviderError):
    retryable = False


def provider_error_from_status(status_code: int | None, message: str) -> ProviderError:
    """Map an HTTP-like status code to the matching provider error."""
    if status_code == 429:
        return RateLimitedError(message, status_code=status_code)
    if status_code in (401, 403):
        return UnauthorizedError(message, status_code=status_code)
    if status_code == 404:
        return ModelNotFoundError(message, status_code=status_code)
    if status_code is not None and 400 <= status_code < 500:
        return InvalidInputError(message, status_code=status_code)
    return ProviderUnavailableError(message, status_code=status_code)


def is_retryable(error: BaseException) -> bool:
    """Decide whether a job failure should be retried or dead-lettered."""
    if isinstance(error, NotFoundError):
        return False
    if isinstance(error, ProviderError):
        return error.retryable
    if isinstance(error, (TimeoutError, ConnectionError)):
        return True
    if isinstance(error, (ValidationError, VectorError)):
        return False
    # Unknown failures are retried; the budget still bounds them.
    return True
