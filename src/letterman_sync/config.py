"""Runtime configuration for the letterman sync engine.

Reads GitHub connection and storage settings from CLI args, environment
variables, .env files, and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    GITHUB_TOKEN: Personal access token for the contents API (optional;
        sync operations fail without it, local post operations work)
    LETTERMAN_GITHUB_API_URL: API base URL (default: https://api.github.com)
    LETTERMAN_DATABASE: SQLite database path (default: ~/.letterman/letterman.db)
    LETTERMAN_REQUEST_TIMEOUT: Remote request timeout in seconds (default: 3)
    LETTERMAN_WORKER_ID: Snowflake worker id, 0-1023 (default: 1)
    LETTERMAN_DEBUG: Enable debug logging (optional, default: false)
"""

import logging
import os
from dataclasses import dataclass
from urllib.parse import urlparse

from .storage.ids import MAX_WORKER_ID

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_DATABASE_PATH = "~/.letterman/letterman.db"
DEFAULT_TIMEOUT = 3.0
USER_AGENT = "letterman"


@dataclass
class Config:
    github_token: str = ""
    github_api_url: str = DEFAULT_API_URL
    request_timeout: float = DEFAULT_TIMEOUT
    user_agent: str = USER_AGENT
    database_path: str = DEFAULT_DATABASE_PATH
    worker_id: int = 1
    debug: bool = False


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If the API URL, timeout or worker id is invalid.
    """
    config.github_api_url = config.github_api_url.strip()

    if not config.github_api_url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid GitHub API URL '{config.github_api_url}': must start with http:// or https://"
        )

    parsed = urlparse(config.github_api_url)
    if not parsed.hostname:
        raise ValueError(
            f"Invalid GitHub API URL '{config.github_api_url}': URL must include a hostname"
        )

    config.github_api_url = config.github_api_url.removesuffix("/")

    if config.request_timeout <= 0:
        raise ValueError(
            f"Invalid request timeout {config.request_timeout}: must be positive"
        )

    if not 0 <= config.worker_id <= MAX_WORKER_ID:
        raise ValueError(
            f"Invalid worker id {config.worker_id}: must be between 0 and {MAX_WORKER_ID}"
        )

    if not config.database_path.strip():
        raise ValueError("Database path cannot be empty")

    if not config.github_token:
        logger.warning(
            "GITHUB_TOKEN is not set; remote sync operations will fail"
        )


def load_config(
    token: str | None = None,
    api_url: str | None = None,
    database: str | None = None,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        token: Override GitHub token.
        api_url: Override API base URL.
        database: Override database path.
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Flat dict of values from the YAML config file
            (``github`` and ``storage`` sections merged).

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If a numeric setting cannot be parsed or any value
            fails validation.
    """
    fb = yaml_fallbacks or {}

    # --- String fields: CLI > env > YAML > default ---

    github_token = (
        token or os.getenv("GITHUB_TOKEN") or fb.get("token") or ""
    ).strip()

    github_api_url = (
        api_url
        or os.getenv("LETTERMAN_GITHUB_API_URL")
        or fb.get("api_url")
        or DEFAULT_API_URL
    )

    database_path = (
        database
        or os.getenv("LETTERMAN_DATABASE")
        or fb.get("database")
        or DEFAULT_DATABASE_PATH
    )

    # --- Boolean fields: CLI > env > YAML > default ---

    if debug:
        final_debug = True
    else:
        env_debug = os.getenv("LETTERMAN_DEBUG")
        if env_debug is not None:
            final_debug = env_debug.lower() in ("true", "1", "yes", "on")
        else:
            final_debug = bool(fb.get("debug", False))

    # --- Numeric fields: env > YAML > default ---

    timeout_raw = os.getenv("LETTERMAN_REQUEST_TIMEOUT")
    if timeout_raw is not None:
        try:
            final_timeout = float(timeout_raw)
        except ValueError:
            raise ValueError(
                f"Invalid LETTERMAN_REQUEST_TIMEOUT '{timeout_raw}': must be a number of seconds"
            ) from None
    elif "timeout" in fb:
        final_timeout = float(fb["timeout"])
    else:
        final_timeout = DEFAULT_TIMEOUT

    worker_raw = os.getenv("LETTERMAN_WORKER_ID")
    if worker_raw is not None:
        try:
            final_worker = int(worker_raw)
        except ValueError:
            raise ValueError(
                f"Invalid LETTERMAN_WORKER_ID '{worker_raw}': must be a number between 0 and {MAX_WORKER_ID}"
            ) from None
    elif "worker_id" in fb:
        final_worker = int(fb["worker_id"])
    else:
        final_worker = 1

    config = Config(
        github_token=github_token,
        github_api_url=github_api_url,
        request_timeout=final_timeout,
        database_path=database_path,
        worker_id=final_worker,
        debug=final_debug,
    )

    validate_config(config)

    return config
