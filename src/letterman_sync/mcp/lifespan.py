"""Lifespan management for MCP server startup and shutdown."""

import logging
import sys
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from dotenv import load_dotenv

from ..config import Config, load_config
from ..config_loader import (
    discover_config_files,
    load_hierarchical_config,
)
from ..config_schema import build_config, to_yaml_fallbacks
from ..core.async_utils import run_sync
from ..core.client import GithubClient
from ..errors import ClientBuilderError
from ..storage import (
    Database,
    SnowflakeIdGenerator,
    SyncRecordStore,
    VersionLedger,
)
from ..sync.actions import ContentClient
from ..sync.coordinator import SyncCoordinator
from ..sync.models import Platform

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


@dataclass
class AppContext:
    """Services shared by every tool handler for the server's lifetime."""

    config: Config
    db: Database
    ledger: VersionLedger
    records: SyncRecordStore
    coordinator: SyncCoordinator


def make_client_factory(
    config: Config,
) -> Callable[[Platform], ContentClient]:
    """Return a factory that builds each platform client once, on first use.

    Building is deferred so the server starts, and local post tools work,
    without remote credentials.  A missing token surfaces as
    ``ClientBuilderError`` from the first sync call.
    """
    clients: dict[Platform, ContentClient] = {}

    def factory(platform: Platform) -> ContentClient:
        if platform not in clients:
            if platform != Platform.GITHUB:
                raise ClientBuilderError(
                    f"No client available for platform '{platform.value}'"
                )
            clients[platform] = GithubClient(config)
        return clients[platform]

    return factory


def build_app(config: Config) -> AppContext:
    """Open the database and wire the engine's services together."""
    db = Database(config.database_path)
    db.connect()
    ledger = VersionLedger(db, SnowflakeIdGenerator(config.worker_id))
    records = SyncRecordStore(db)
    coordinator = SyncCoordinator(
        ledger, records, make_client_factory(config)
    )
    return AppContext(
        config=config,
        db=db,
        ledger=ledger,
        records=records,
        coordinator=coordinator,
    )


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[AppContext]:
    """
    Manage server startup and shutdown lifecycle.

    On startup:
    - Load .env file (so values are available for env var lookups and YAML interpolation)
    - Load YAML config files if present (as fallback values)
    - Merge all sources via load_config(): CLI > env vars > .env > YAML > defaults
    - Open the database and build the sync services

    On shutdown:
    - Close the database

    Args:
        config_overrides: Optional dict with values from CLI (token, api_url, database, debug)

    Yields:
        The initialized AppContext

    Raises:
        RuntimeError: If configuration is invalid or the database cannot be opened.
    """
    logger.info("MCP server starting...")
    _stderr_print("Letterman MCP Server starting...")

    overrides = config_overrides or {}
    try:
        load_dotenv()

        yaml_fallbacks: dict[str, Any] | None = None
        sources = []
        config_files = discover_config_files()
        if config_files:
            unified = build_config(load_hierarchical_config())
            yaml_fallbacks = to_yaml_fallbacks(unified)
            if "level" in unified.logging.model_fields_set:
                logging.getLogger().setLevel(unified.logging.level.upper())
            sources.append(f"config file: {config_files[0]}")

        config = load_config(
            token=overrides.get("token"),
            api_url=overrides.get("api_url"),
            database=overrides.get("database"),
            debug=overrides.get("debug", False),
            yaml_fallbacks=yaml_fallbacks,
        )

        if overrides:
            sources.append("CLI arguments")
        sources.append("environment variables")
        source_desc = ", ".join(sources)
        logger.info("Configuration loaded from: %s", source_desc)
        _stderr_print(f"  Configuration loaded from: {source_desc}")
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        raise RuntimeError(f"Configuration error: {e}") from e

    try:
        app = await run_sync(build_app, config)
    except Exception as e:
        logger.error("Failed to open database %s: %s", config.database_path, e)
        _stderr_print(f"ERROR: Cannot open database {config.database_path}")
        _stderr_print(f"  {e}")
        raise RuntimeError(f"Database initialization failed: {e}") from e

    _stderr_print(f"  Database: {config.database_path}")
    if config.github_token:
        _stderr_print(f"  GitHub API: {config.github_api_url}")
    else:
        _stderr_print("  GitHub: not configured (GITHUB_TOKEN unset), sync tools will fail")
    _stderr_print("Server ready. Waiting for MCP client connection...")

    try:
        yield app
    finally:
        app.db.close()
        logger.info("MCP server shutting down")
        _stderr_print("Letterman MCP Server shutting down.")
