"""Post ledger tool handlers for MCP server.

This module implements local post operations: create, update, get, list,
history, revert and delete.  Handlers run the blocking ledger calls through
run_sync() and return both text and structured JSON.
"""

import mcp.types as types

from ...core.async_utils import run_sync
from ...validators import validate_title
from ..lifespan import AppContext
from .errors import (
    format_timestamp,
    parse_post_id,
    post_json,
    short_version,
)
from .registry import POST_VIEW, POST_WRITE, ToolSpec

_POST_ID_SCHEMA = {
    "type": ["integer", "string"],
    "description": "Post id (integer, or decimal string for large ids)",
}

_METADATA_SCHEMA = {
    "type": "object",
    "additionalProperties": {"type": "string"},
    "description": "Flat string mapping published as frontmatter (optional)",
}

POST_TOOLS = [
    types.Tool(
        name="post_create",
        description="Create a new post. Returns the post id and its first version.",
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=False,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "title": {"type": "string", "description": "Post title"},
                "content": {"type": "string", "description": "Post body"},
                "metadata": _METADATA_SCHEMA,
            },
            "required": ["title", "content"],
        },
    ),
    types.Tool(
        name="post_update",
        description=(
            "Append a new version to a post. base_version must be the current "
            "head version (see post_get); stale versions are rejected."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=False,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "base_version": {
                    "type": "string",
                    "description": "Head version the edit is based on",
                },
                "title": {"type": "string", "description": "Post title"},
                "content": {"type": "string", "description": "Post body"},
                "metadata": _METADATA_SCHEMA,
            },
            "required": ["base_version", "title", "content"],
        },
    ),
    types.Tool(
        name="post_get",
        description="Get a post's head, or a specific version of it.",
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "post_id": _POST_ID_SCHEMA,
                "version": {
                    "type": "string",
                    "description": "Specific version (optional, defaults to head)",
                },
            },
            "required": ["post_id"],
        },
    ),
    types.Tool(
        name="post_list",
        description="List posts (head versions), most recently changed first.",
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "page": {
                    "type": "integer",
                    "default": 1,
                    "minimum": 1,
                },
                "page_size": {
                    "type": "integer",
                    "default": 20,
                    "minimum": 1,
                    "maximum": 100,
                },
            },
            "required": [],
        },
    ),
    types.Tool(
        name="post_history",
        description="List every version of a post, newest first.",
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {"post_id": _POST_ID_SCHEMA},
            "required": ["post_id"],
        },
    ),
    types.Tool(
        name="post_revert",
        description=(
            "Make an earlier version the head again. Every later version of "
            "the post is deleted permanently."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "version": {
                    "type": "string",
                    "description": "Version to restore",
                },
            },
            "required": ["version"],
        },
    ),
    types.Tool(
        name="post_delete",
        description=(
            "Delete a post and every one of its versions permanently. Remote "
            "copies and the sync history are kept."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=False,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {"post_id": _POST_ID_SCHEMA},
            "required": ["post_id"],
        },
    ),
]


def _text(lines: list[str], structured: dict) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text="\n".join(lines))],
        structuredContent=structured,
    )


def _post_fields(args: dict) -> tuple[str, dict[str, str], str]:
    title = args.get("title")
    if title is None:
        raise ValueError("title is required")
    ok, message = validate_title(title)
    if not ok:
        raise ValueError(message)
    content = args.get("content")
    if content is None:
        raise ValueError("content is required")
    metadata = args.get("metadata") or {}
    if not isinstance(metadata, dict):
        raise ValueError("metadata must be an object of string values")
    return title, {str(k): str(v) for k, v in metadata.items()}, content


async def _handle_create(
    app: AppContext, args: dict
) -> types.CallToolResult:
    """Handle post_create."""
    title, metadata, content = _post_fields(args)
    post = await run_sync(app.ledger.create, title, metadata, content)
    return _text(
        [
            f"Created post {post.post_id}",
            f"Version: {post.version}",
        ],
        post_json(post, include_content=False),
    )


async def _handle_update(
    app: AppContext, args: dict
) -> types.CallToolResult:
    """Handle post_update."""
    base_version = args.get("base_version")
    if not base_version:
        raise ValueError("base_version is required")
    title, metadata, content = _post_fields(args)
    post = await run_sync(
        app.ledger.update, base_version, title, metadata, content
    )
    return _text(
        [
            f"Updated post {post.post_id}",
            f"Version: {short_version(base_version)} -> {post.version}",
        ],
        post_json(post, include_content=False),
    )


async def _handle_get(app: AppContext, args: dict) -> types.CallToolResult:
    """Handle post_get."""
    post_id = parse_post_id(args)
    version = args.get("version")
    if version:
        post = await run_sync(app.ledger.get_by_version, post_id, version)
    else:
        post = await run_sync(app.ledger.get_head, post_id)

    lines = [
        f"# {post.title}",
        f"Post: {post.post_id} | Version: {short_version(post.version)}"
        f"{' (head)' if post.head else ''} | "
        f"Created: {format_timestamp(post.create_time)}",
    ]
    for key, value in post.metadata.items():
        lines.append(f"{key}: {value}")
    lines += ["----", "", post.content]
    return _text(lines, post_json(post))


async def _handle_list(app: AppContext, args: dict) -> types.CallToolResult:
    """Handle post_list."""
    page = int(args.get("page", 1))
    page_size = min(int(args.get("page_size", 20)), 100)
    result = await run_sync(app.ledger.list_heads, page, page_size)

    lines = [f"Posts (page {page}, {result.total} total):", ""]
    for post in result.data:
        lines.append(
            f"- {post.post_id}: {post.title} "
            f"({short_version(post.version)}, "
            f"{format_timestamp(post.create_time)})"
        )
    if not result.data:
        lines.append("No posts.")
    if result.next:
        lines += ["", f"More posts: call post_list with page={result.next}"]

    return _text(
        lines,
        {
            "total": result.total,
            "prev": result.prev,
            "next": result.next,
            "posts": [
                post_json(post, include_content=False)
                for post in result.data
            ],
        },
    )


async def _handle_history(
    app: AppContext, args: dict
) -> types.CallToolResult:
    """Handle post_history."""
    post_id = parse_post_id(args)
    versions = await run_sync(app.ledger.list_versions, post_id)

    lines = [f"History of post {post_id} ({len(versions)} versions):", ""]
    for post in versions:
        marker = " [head]" if post.head else ""
        lines.append(
            f"- {post.version}{marker} {format_timestamp(post.create_time)} "
            f"{post.title}"
        )
    return _text(
        lines,
        {
            "post_id": str(post_id),
            "versions": [
                post_json(post, include_content=False) for post in versions
            ],
        },
    )


async def _handle_revert(
    app: AppContext, args: dict
) -> types.CallToolResult:
    """Handle post_revert."""
    version = args.get("version")
    if not version:
        raise ValueError("version is required")
    post = await run_sync(app.ledger.revert, version)
    return _text(
        [
            f"Reverted post {post.post_id} to {post.version}",
            "Later versions were deleted.",
        ],
        post_json(post, include_content=False),
    )


async def _handle_delete(
    app: AppContext, args: dict
) -> types.CallToolResult:
    """Handle post_delete."""
    post_id = parse_post_id(args)
    deleted = await run_sync(app.ledger.delete, post_id)
    return _text(
        [f"Deleted post {post_id} ({deleted} versions)"],
        {"post_id": str(post_id), "deleted_versions": deleted},
    )


_READ = frozenset({POST_VIEW})
_WRITE = frozenset({POST_WRITE})
_HANDLERS = {
    "post_create": (_WRITE, _handle_create),
    "post_update": (_WRITE, _handle_update),
    "post_get": (_READ, _handle_get),
    "post_list": (_READ, _handle_list),
    "post_history": (_READ, _handle_history),
    "post_revert": (_WRITE, _handle_revert),
    "post_delete": (_WRITE, _handle_delete),
}

POST_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=tool,
        permissions=_HANDLERS[tool.name][0],
        handler=_HANDLERS[tool.name][1],
    )
    for tool in POST_TOOLS
]
