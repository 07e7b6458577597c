"""Unified configuration schema for letterman_sync.

Pydantic models for the YAML config structure, with one section per
concern, plus an adapter onto the flat ``Config`` dataclass.

Usage:
    from letterman_sync.config_schema import build_config, to_legacy_config

    raw = load_hierarchical_config()
    unified = build_config(raw)
    config = to_legacy_config(unified, cli_overrides={"debug": True})

Example file::

    github:
      token: ${GITHUB_TOKEN}
      timeout: 5
    storage:
      database: ~/.letterman/letterman.db
      worker_id: 3
    logging:
      level: DEBUG
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from .storage.ids import MAX_WORKER_ID

if TYPE_CHECKING:
    from .config import Config


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class GithubConfig(BaseModel):
    """GitHub contents API settings.

    All fields are optional; env vars and CLI args can supply them.
    """

    token: str | None = Field(default=None, description="Access token")
    api_url: str | None = Field(default=None, description="API base URL")
    timeout: float = Field(
        default=3.0, gt=0, description="Request timeout in seconds"
    )

    model_config = {"frozen": True}


class StorageConfig(BaseModel):
    database: str | None = Field(
        default=None, description="SQLite database path"
    )
    worker_id: int = Field(
        default=1,
        ge=0,
        le=MAX_WORKER_ID,
        description="Snowflake worker id for new post ids",
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
        debug: Enable debug mode.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")
    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = {"frozen": True}


class UnifiedConfig(BaseModel):
    """Top-level configuration; ``UnifiedConfig()`` is always valid."""

    github: GithubConfig = Field(default_factory=GithubConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Build a ``UnifiedConfig`` from ``load_hierarchical_config()`` output.

    Missing sections get defaults.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)


def to_yaml_fallbacks(unified: UnifiedConfig) -> dict:
    """Flatten the sections into the ``yaml_fallbacks`` dict that
    ``load_config()`` consumes.  Unset values are left out."""
    fallbacks = {
        "token": unified.github.token,
        "api_url": unified.github.api_url,
        "database": unified.storage.database,
    }
    fallbacks = {k: v for k, v in fallbacks.items() if v is not None}
    fields_set = unified.github.model_fields_set
    if "timeout" in fields_set:
        fallbacks["timeout"] = unified.github.timeout
    if "worker_id" in unified.storage.model_fields_set:
        fallbacks["worker_id"] = unified.storage.worker_id
    if unified.logging.debug:
        fallbacks["debug"] = True
    return fallbacks


def to_legacy_config(
    unified: UnifiedConfig,
    cli_overrides: dict | None = None,
) -> Config:
    """Convert a ``UnifiedConfig`` into the ``Config`` dataclass.

    Precedence: CLI override > unified config value > built-in default.
    CLI override keys: token, api_url, database, debug.

    The result is NOT validated; call ``validate_config()`` if needed.
    """
    # Deferred: config.py imports storage, which this module also uses
    from .config import DEFAULT_API_URL, DEFAULT_DATABASE_PATH, Config

    overrides = cli_overrides or {}

    return Config(
        github_token=overrides.get("token") or unified.github.token or "",
        github_api_url=overrides.get("api_url")
        or unified.github.api_url
        or DEFAULT_API_URL,
        request_timeout=unified.github.timeout,
        database_path=overrides.get("database")
        or unified.storage.database
        or DEFAULT_DATABASE_PATH,
        worker_id=unified.storage.worker_id,
        debug=overrides.get("debug", False) or unified.logging.debug,
    )
