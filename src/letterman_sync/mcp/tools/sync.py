"""MCP tool handlers for publishing posts to external platforms.

Defines five tools:

- ``post_sync`` -- push the head when it is safe (never pulls).
- ``post_force_push`` -- overwrite the remote with the local head.
- ``post_force_pull`` -- make the remote content the new local head.
- ``post_sync_history`` -- page through the publish log of a post.
- ``post_sync_status`` -- reconciliation state and current remote pointer.
"""

from __future__ import annotations

import logging
from typing import Any

import mcp.types as types

from ...core.async_utils import run_sync
from ...sync.models import (
    Platform,
    PlatformRequest,
    SyncRecordView,
    SyncResult,
)
from ..lifespan import AppContext
from .errors import (
    format_timestamp,
    parse_post_id,
    post_json,
    record_json,
    short_version,
)
from .registry import POST_WRITE, SYNC_VIEW, SYNC_WRITE, ToolSpec

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------

_POST_ID = {
    "type": ["integer", "string"],
    "description": "Post id (integer, or decimal string for large ids)",
}
_PLATFORM = {
    "type": "string",
    "enum": [p.value for p in Platform],
    "default": Platform.GITHUB.value,
    "description": "Target platform",
}
_LOCATION = {
    "repository": {
        "type": "string",
        "description": "owner/name of the repository (needed for the first publish)",
    },
    "path": {
        "type": "string",
        "description": "File path inside the repository (needed for the first publish)",
    },
}


def _write_tool(
    name: str, description: str, destructive: bool
) -> types.Tool:
    return types.Tool(
        name=name,
        description=description,
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=destructive,
            idempotentHint=not destructive,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "post_id": _POST_ID,
                "platform": _PLATFORM,
                **_LOCATION,
            },
            "required": ["post_id"],
        },
    )


SYNC_TOOLS: list[types.Tool] = [
    _write_tool(
        "post_sync",
        "Publish a post's head to a platform if that is safe: creates the "
        "file on first publish, updates it when the remote holds an older "
        "version, does nothing when already in sync, and refuses when local "
        "and remote history diverged. Never pulls.",
        destructive=False,
    ),
    _write_tool(
        "post_force_push",
        "Overwrite the remote file with the local head regardless of what "
        "the remote holds.",
        destructive=True,
    ),
    _write_tool(
        "post_force_pull",
        "Replace the local head with the remote file's content. The pulled "
        "content becomes a new version; earlier versions are kept.",
        destructive=False,
    ),
    types.Tool(
        name="post_sync_history",
        description="List the publish log of a post on one platform, newest first.",
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "post_id": _POST_ID,
                "platform": _PLATFORM,
                "page": {"type": "integer", "default": 1, "minimum": 1},
                "page_size": {
                    "type": "integer",
                    "default": 20,
                    "minimum": 1,
                    "maximum": 100,
                },
            },
            "required": ["post_id"],
        },
    ),
    types.Tool(
        name="post_sync_status",
        description=(
            "Show whether a post is never synced, in sync, ahead of, or "
            "diverged from each platform, with the last remote write. "
            "Reads local state only."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "post_id": _POST_ID,
                "platform": {
                    **_PLATFORM,
                    "description": "Limit to one platform (optional)",
                },
            },
            "required": ["post_id"],
        },
    ),
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _platform(args: dict[str, Any]) -> Platform:
    raw = args.get("platform") or Platform.GITHUB.value
    try:
        return Platform(raw)
    except ValueError:
        raise ValueError(
            f"Unknown platform '{raw}'. Valid platforms: {[p.value for p in Platform]}"
        ) from None


def _request(args: dict[str, Any]) -> PlatformRequest:
    return PlatformRequest(
        platform=_platform(args),
        repository=args.get("repository") or None,
        path=args.get("path") or None,
    )


def _result_response(result: SyncResult) -> types.CallToolResult:
    structured: dict[str, Any] = {
        "post_id": str(result.post_id),
        "platform": result.platform.value,
        "status": result.status.value if result.status else None,
        "action": result.action.value,
        "record": record_json(result.record) if result.record else None,
    }
    if result.post is not None:
        structured["post"] = post_json(result.post, include_content=False)
    lines = [result.summary()]
    if result.record is not None and result.record.url:
        lines.append(f"URL: {result.record.url}")
    return types.CallToolResult(
        content=[types.TextContent(type="text", text="\n".join(lines))],
        structuredContent=structured,
    )


def _view_line(view: SyncRecordView) -> str:
    record = view.record
    state = "current" if view.is_latest else "behind"
    if view.post is None:
        state = "version no longer in history"
    return (
        f"- {format_timestamp(record.create_time)} {record.action.value} "
        f"{record.repository}/{record.path} @ {record.sha[:7]} "
        f"(version {short_version(record.version)}, {state})"
    )


def _view_json(view: SyncRecordView) -> dict[str, Any]:
    return {
        **record_json(view.record),
        "is_latest": view.is_latest,
        "post_title": view.post.title if view.post else None,
    }


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_sync(app: AppContext, args: dict) -> types.CallToolResult:
    """Handle post_sync."""
    result = await run_sync(
        app.coordinator.synchronize, parse_post_id(args), _request(args)
    )
    return _result_response(result)


async def _handle_force_push(
    app: AppContext, args: dict
) -> types.CallToolResult:
    """Handle post_force_push."""
    result = await run_sync(
        app.coordinator.force_push, parse_post_id(args), _request(args)
    )
    return _result_response(result)


async def _handle_force_pull(
    app: AppContext, args: dict
) -> types.CallToolResult:
    """Handle post_force_pull."""
    result = await run_sync(
        app.coordinator.force_pull, parse_post_id(args), _request(args)
    )
    return _result_response(result)


async def _handle_sync_history(
    app: AppContext, args: dict
) -> types.CallToolResult:
    """Handle post_sync_history."""
    post_id = parse_post_id(args)
    platform = _platform(args)
    page = int(args.get("page", 1))
    page_size = min(int(args.get("page_size", 20)), 100)
    result = await run_sync(
        app.coordinator.list_sync_history,
        post_id,
        platform,
        page,
        page_size,
    )

    lines = [
        f"Sync history of post {post_id} on {platform.value} "
        f"(page {page}, {result.total} records):",
        "",
    ]
    lines += [_view_line(view) for view in result.data] or ["No records."]
    if result.next:
        lines += [
            "",
            f"More records: call post_sync_history with page={result.next}",
        ]

    return types.CallToolResult(
        content=[types.TextContent(type="text", text="\n".join(lines))],
        structuredContent={
            "total": result.total,
            "prev": result.prev,
            "next": result.next,
            "records": [_view_json(view) for view in result.data],
        },
    )


async def _handle_sync_status(
    app: AppContext, args: dict
) -> types.CallToolResult:
    """Handle post_sync_status."""
    post_id = parse_post_id(args)
    platforms = (
        [_platform(args)] if args.get("platform") else list(Platform)
    )

    latest = {
        view.record.platform: view
        for view in await run_sync(
            app.coordinator.latest_sync_records, post_id
        )
    }
    lines = [f"Sync status of post {post_id}:", ""]
    entries = []
    for platform in platforms:
        status = await run_sync(app.coordinator.check, post_id, platform)
        view = latest.get(platform)
        lines.append(f"{platform.value}: {status.value}")
        if view is not None:
            lines.append("  " + _view_line(view))
        entries.append(
            {
                "platform": platform.value,
                "status": status.value,
                "latest": _view_json(view) if view else None,
            }
        )

    return types.CallToolResult(
        content=[types.TextContent(type="text", text="\n".join(lines))],
        structuredContent={"post_id": str(post_id), "platforms": entries},
    )


_READ = frozenset({SYNC_VIEW})
_WRITE = frozenset({SYNC_WRITE})
_HANDLERS = {
    "post_sync": (_WRITE, _handle_sync),
    "post_force_push": (_WRITE, _handle_force_push),
    "post_force_pull": (_WRITE | {POST_WRITE}, _handle_force_pull),
    "post_sync_history": (_READ, _handle_sync_history),
    "post_sync_status": (_READ, _handle_sync_status),
}

SYNC_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=tool,
        permissions=_HANDLERS[tool.name][0],
        handler=_HANDLERS[tool.name][1],
    )
    for tool in SYNC_TOOLS
]
