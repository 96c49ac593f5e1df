"""
Configuration helpers for the directory database, providers, and worker.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path


DEFAULT_DB_PATH = "~/.yellowbook/directory.duckdb"
ENV_DB_PATH = "YELLOWBOOK_DB_PATH"

DEFAULT_EMBEDDING_DIM = 768
DEFAULT_CACHE_TTL_SECONDS = 3600.0
DEFAULT_CACHE_MAX_ENTRIES = 1024
DEFAULT_TOP_K = 5


def resolve_db_path(override_path: str | None = None) -> str:
    """
    Resolve the DuckDB path from CLI override, env var, or default.

    Precedence:
    1) explicit override_path
    2) YELLOWBOOK_DB_PATH
    3) default path
    """
    raw_path = override_path or os.getenv(ENV_DB_PATH) or DEFAULT_DB_PATH
    resolved = Path(raw_path).expanduser().resolve()
    resolved.parent.mkdir(parents=True, exist_ok=True)
    return str(resolved)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def _env_int(name: str, default: int, *, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc
    return max(value, minimum)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Runtime settings resolved from the environment."""

    db_path: str
    embedding_dim: int = DEFAULT_EMBEDDING_DIM
    cache_ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS
    cache_max_entries: int = DEFAULT_CACHE_MAX_ENTRIES
    top_k: int = DEFAULT_TOP_K
    embed_timeout: float = 10.0
    completion_timeout: float = 30.0
    worker_concurrency: int = 1
    worker_poll_interval: float = 2.0
    run_worker: bool = True
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, db_path: str | None = None) -> "Settings":
        return cls(
            db_path=resolve_db_path(db_path),
            embedding_dim=_env_int("YELLOWBOOK_EMBEDDING_DIM", DEFAULT_EMBEDDING_DIM),
            cache_ttl_seconds=_env_float(
                "YELLOWBOOK_CACHE_TTL", DEFAULT_CACHE_TTL_SECONDS
            ),
            cache_max_entries=_env_int(
                "YELLOWBOOK_CACHE_MAX_ENTRIES", DEFAULT_CACHE_MAX_ENTRIES
            ),
            top_k=_env_int("YELLOWBOOK_TOP_K", DEFAULT_TOP_K),
            embed_timeout=_env_float("YELLOWBOOK_EMBED_TIMEOUT", 10.0),
            completion_timeout=_env_float("YELLOWBOOK_COMPLETION_TIMEOUT", 30.0),
            worker_concurrency=_env_int("YELLOWBOOK_WORKER_CONCURRENCY", 1),
            worker_poll_interval=_env_float("YELLOWBOOK_WORKER_POLL_INTERVAL", 2.0),
            run_worker=_env_bool("YELLOWBOOK_RUN_WORKER", True),
            log_level=os.getenv("YELLOWBOOK_LOG_LEVEL", "INFO").upper(),
        )


def configure_logging(level: str | int = "INFO") -> None:
    """Install a basic stderr handler for the package loggers."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
