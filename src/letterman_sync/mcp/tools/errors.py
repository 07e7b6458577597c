"""Error response builders and shared utilities for MCP tool handlers.

Engine errors carry an ``error_type`` tag; ``translate_sync_error`` maps
each tag to a corrective action an agent can take without human help.
"""

from datetime import datetime
from typing import Any

import mcp.types as types

from ...errors import RemoteServerError, SyncError
from ...sync.models import Post, SyncRecord


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (not_found, not_latest_version, ambiguous,
            validation_error, server_error, ...)
        message: Human-readable error description
        corrective_action: Specific action the agent can take to resolve the error

    Returns:
        CallToolResult with isError=True

    Examples:
        >>> build_error_response("not_found", "Post 7 not found", "Use post_list to find posts.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


# ---------------------------------------------------------------------------
# Shared formatting utilities
# ---------------------------------------------------------------------------


def format_timestamp(timestamp: Any) -> str:
    """Format a timestamp as ``YYYY-MM-DD HH:MM`` (UTC when aware)."""
    match timestamp:
        case datetime() as dt:
            return dt.strftime("%Y-%m-%d %H:%M")
        case _:
            return str(timestamp)


def short_version(version: str) -> str:
    """First 12 hex digits of a version id, for display."""
    return version[:12]


def parse_post_id(args: dict) -> int:
    """Read ``post_id`` from tool arguments.

    Snowflake ids exceed the range JSON clients represent exactly, so
    both integers and decimal strings are accepted.

    Raises:
        ValueError: If post_id is missing or not an integer.
    """
    raw = args.get("post_id")
    if raw is None or raw == "":
        raise ValueError("post_id is required")
    if isinstance(raw, bool):
        raise ValueError(f"Invalid post_id: {raw!r}")
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid post_id: {raw!r}") from None


def post_json(post: Post, include_content: bool = True) -> dict[str, Any]:
    """Structured form of a post revision (post_id as a string)."""
    data: dict[str, Any] = {
        "post_id": str(post.post_id),
        "version": post.version,
        "prev_version": post.prev_version,
        "head": post.head,
        "title": post.title,
        "metadata": dict(post.metadata),
        "create_time": post.create_time.isoformat(),
    }
    if include_content:
        data["content"] = post.content
    return data


def record_json(record: SyncRecord) -> dict[str, Any]:
    """Structured form of a sync record."""
    return {
        "id": record.id,
        "post_id": str(record.post_id),
        "platform": record.platform.value,
        "version": record.version,
        "action": record.action.value,
        "repository": record.repository,
        "path": record.path,
        "sha": record.sha,
        "url": record.url,
        "create_time": record.create_time.isoformat(),
    }


# ---------------------------------------------------------------------------
# Corrective actions per error type
# ---------------------------------------------------------------------------

_ACTIONS: dict[str, str] = {
    "not_found": "Use post_list to find posts, or post_history to list versions of a post.",
    "not_latest_version": "Fetch the head with post_get(post_id=N), then retry the update with its version.",
    "ambiguous": (
        "Local and remote history diverged. Inspect with post_sync_status, "
        "then choose post_force_push (keep local) or post_force_pull (keep remote)."
    ),
    "user_error": "Check parameter values and retry.",
    "network_error": "Check network connectivity to the GitHub API and retry.",
    "client_builder": "Set GITHUB_TOKEN (and LETTERMAN_GITHUB_API_URL if not using github.com), then restart the server.",
    "decode": "The remote file is not a readable text document; fix it on the platform or use post_force_push.",
    "database": "Check the LETTERMAN_DATABASE path and file permissions.",
}

_REMOTE_STATUS_ACTIONS: dict[int, str] = {
    401: "The GitHub token was rejected. Set a valid GITHUB_TOKEN.",
    403: "The GitHub token lacks write access to this repository.",
    404: "Check repository and path; the file or repository does not exist.",
    409: "The remote file changed since the last sync. Use post_sync_status, then post_force_push or post_force_pull.",
    422: (
        "GitHub rejected the write, e.g. the file already exists. Pass a "
        "different path, or remove the remote file and publish again."
    ),
}


def translate_sync_error(error: SyncError) -> types.CallToolResult:
    """Translate an engine error into a structured error response."""
    if isinstance(error, RemoteServerError):
        action = _REMOTE_STATUS_ACTIONS.get(
            error.status_code, "GitHub returned an error. Retry later."
        )
    else:
        action = _ACTIONS.get(
            error.error_type, "Retry later or check the server log."
        )
    return build_error_response(error.error_type, str(error), action)
