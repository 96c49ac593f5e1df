"""Tests for settings resolution and error classification."""

from __future__ import annotations

from pathlib import Path

import pytest

from yellowbook_search.config import DEFAULT_TOP_K, Settings, resolve_db_path
from yellowbook_search.errors import (
    InvalidInputError,
    NotFoundError,
    ProviderConnectionError,
    ProviderUnavailableError,
    RateLimitedError,
    ValidationError,
    VectorError,
    is_retryable,
    provider_error_from_status,
)


def test_resolve_db_path_precedence(tmp_path: Path, monkeypatch) -> None:
    env_path = tmp_path / "env" / "directory.duckdb"
    monkeypatch.setenv("YELLOWBOOK_DB_PATH", str(env_path))

    assert resolve_db_path() == str(env_path.resolve())
    override = tmp_path / "cli.duckdb"
    assert resolve_db_path(str(override)) == str(override.resolve())
    assert env_path.parent.is_dir()


def test_settings_from_env(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("YELLOWBOOK_EMBEDDING_DIM", "256")
    monkeypatch.setenv("YELLOWBOOK_CACHE_TTL", "60")
    monkeypatch.setenv("YELLOWBOOK_WORKER_CONCURRENCY", "4")
    monkeypatch.setenv("YELLOWBOOK_RUN_WORKER", "true")
    monkeypatch.setenv("YELLOWBOOK_LOG_LEVEL", "debug")
    monkeypatch.delenv("YELLOWBOOK_TOP_K", raising=False)

    settings = Settings.from_env(str(tmp_path / "db.duckdb"))

    assert settings.embedding_dim == 256
    assert settings.cache_ttl_seconds == 60.0
    assert settings.worker_concurrency == 4
    assert settings.run_worker is True
    assert settings.log_level == "DEBUG"
    assert settings.top_k == DEFAULT_TOP_K


def test_settings_reject_malformed_numbers(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("YELLOWBOOK_CACHE_TTL", "an hour")

    with pytest.raises(ValueError, match="YELLOWBOOK_CACHE_TTL"):
        Settings.from_env(str(tmp_path / "db.duckdb"))


def test_server_runs_worker_unless_disabled(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("YELLOWBOOK_RUN_WORKER", raising=False)
    assert Settings.from_env(str(tmp_path / "db.duckdb")).run_worker is True

    monkeypatch.setenv("YELLOWBOOK_RUN_WORKER", "0")
    assert Settings.from_env(str(tmp_path / "db.duckdb")).run_worker is False


@pytest.mark.parametrize(
    ("status", "expected"),
    [
        (429, RateLimitedError),
        (500, ProviderUnavailableError),
        (None, ProviderUnavailableError),
        (422, InvalidInputError),
    ],
)
def test_provider_error_from_status(status, expected) -> None:
    assert type(provider_error_from_status(status, "boom")) is expected


@pytest.mark.parametrize(
    ("error", "retryable"),
    [
        (RateLimitedError("quota"), True),
        (ProviderConnectionError("reset"), True),
        (TimeoutError(), True),
        (RuntimeError("unknown"), True),
        (InvalidInputError("empty"), False),
        (NotFoundError("gone"), False),
        (ValidationError("bad"), False),
        (VectorError("nan"), False),
    ],
)
def test_is_retryable(error: BaseException, retryable: bool) -> None:
    assert is_retryable(error) is retryable
