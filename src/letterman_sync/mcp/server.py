"""MCP server exposing the letterman post ledger and GitHub sync.

Transport: stdio
Protocol: JSON-RPC 2.0 over MCP
"""

import argparse
import asyncio
import logging
import sys

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..core.async_utils import run_sync
from ..logger import DEFAULT_LOG_FILE, setup_logging
from .lifespan import AppContext, server_lifespan
from .tools import (
    ALL_SPECS,
    READ_ONLY_PERMISSIONS,
    ToolRegistry,
    build_error_response,
)
from .tools.registry import ToolSpec

logger = logging.getLogger(__name__)

server = Server("letterman-mcp")

# Initialized in main()
_app: AppContext | None = None
_registry: ToolRegistry | None = None


# ---------------------------------------------------------------------------
# Ping tool (always available)
# ---------------------------------------------------------------------------


async def _handle_ping(app: AppContext, args: dict) -> types.CallToolResult:
    """Report database and remote configuration."""
    schema = await run_sync(app.db.get_meta, "schema_version", "unknown")
    github = (
        app.config.github_api_url
        if app.config.github_token
        else "not configured (set GITHUB_TOKEN)"
    )
    return types.CallToolResult(
        content=[
            types.TextContent(
                type="text",
                text=(
                    f"letterman-mcp {__version__}\n"
                    f"Database: {app.db.path} (schema {schema})\n"
                    f"GitHub: {github}"
                ),
            )
        ],
        structuredContent={
            "version": __version__,
            "database": app.db.path,
            "schema_version": schema,
            "github_configured": bool(app.config.github_token),
        },
    )


PING_SPEC = ToolSpec(
    tool=types.Tool(
        name="ping",
        description="Check the server, its database and whether GitHub sync is configured",
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    permissions=frozenset(),
    handler=_handle_ping,
)


# ---------------------------------------------------------------------------
# Global accessors
# ---------------------------------------------------------------------------


def get_app() -> AppContext:
    """Get the global AppContext.

    Raises:
        RuntimeError: If the server lifespan has not started.
    """
    if _app is None:
        raise RuntimeError(
            "AppContext not initialized. Server lifespan not started."
        )
    return _app


def set_app(app: AppContext | None) -> None:
    global _app
    _app = app


def get_registry() -> ToolRegistry:
    """Get the global ToolRegistry.

    Raises:
        RuntimeError: If registry is not initialized
    """
    if _registry is None:
        raise RuntimeError("ToolRegistry not initialized.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    global _registry
    _registry = registry


def build_registry(read_only: bool = False) -> ToolRegistry:
    """Registry of every tool, or of the non-mutating ones only."""
    allowed = READ_ONLY_PERMISSIONS if read_only else None
    return ToolRegistry([PING_SPEC] + ALL_SPECS, allowed)


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    """List registered (and permitted) tools."""
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Handle tool execution via ToolRegistry dispatch."""
    app = get_app()
    try:
        return await get_registry().call_tool(name, arguments, app)
    except ValueError as e:
        # Unknown or filtered-out tool name
        return build_error_response(
            "unknown_tool",
            str(e),
            "Use list_tools to see available tools.",
        )


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


async def main(config_overrides: dict | None = None):
    """Run the MCP server with stdio transport.

    Args:
        config_overrides: Optional dict of CLI values (token, api_url,
            database, debug, log_file, read_only)
    """
    overrides = dict(config_overrides or {})
    log_file = overrides.pop("log_file", None)
    read_only = overrides.pop("read_only", False)

    # Must run before stdio_server so nothing reaches stdout
    setup_logging(
        mode="mcp", debug=overrides.get("debug", False), log_file=log_file
    )

    registry = build_registry(read_only)
    logger.info(
        "Registered %d tools%s",
        registry.tool_count(),
        " (read-only)" if read_only else "",
    )
    if read_only:
        print(
            f"Read-only mode: {registry.tool_count()} tools enabled",
            file=sys.stderr,
        )
    set_registry(registry)

    # set_app() is called here, not in the lifespan, so that running this
    # file as __main__ updates the same module globals the handlers read.
    async with server_lifespan(config_overrides=overrides) as app:
        set_app(app)
        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                init_options = InitializationOptions(
                    server_name="letterman-mcp",
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                )
                await server.run(read_stream, write_stream, init_options)
        finally:
            set_app(None)
            set_registry(None)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Letterman MCP Server - versioned posts published to GitHub",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default config (.env, .letterman/config.yml)
  letterman-mcp

  # Use a specific database
  letterman-mcp --database ~/blog/letterman.db

  # Expose only tools that do not modify posts or remote files
  letterman-mcp --read-only

Note: This server uses stdio transport for JSON-RPC communication with MCP clients.
All user-facing messages are written to stderr.
        """,
    )
    parser.add_argument(
        "--token",
        help="GitHub token (prefer the GITHUB_TOKEN env var; CLI values are visible in the process list)",
    )
    parser.add_argument(
        "--api-url",
        help="GitHub API base URL (overrides LETTERMAN_GITHUB_API_URL)",
    )
    parser.add_argument(
        "--database",
        help="SQLite database path (overrides LETTERMAN_DATABASE)",
    )
    parser.add_argument(
        "--read-only",
        action="store_true",
        help="Hide tools that create, update, revert or publish posts",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--log-file",
        default=DEFAULT_LOG_FILE,
        help=f"Log file path (default: {DEFAULT_LOG_FILE})",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"letterman-mcp version {__version__}",
    )
    return parser


def run() -> None:
    """Entry point that parses CLI arguments and handles errors gracefully."""
    args = build_parser().parse_args()

    config_overrides: dict = {}
    if args.token:
        config_overrides["token"] = args.token
    if args.api_url:
        config_overrides["api_url"] = args.api_url
    if args.database:
        config_overrides["database"] = args.database
    if args.debug:
        config_overrides["debug"] = True
    if args.read_only:
        config_overrides["read_only"] = True
    if args.log_file:
        config_overrides["log_file"] = args.log_file

    shown = [k for k in config_overrides if k != "token"]
    if shown:
        print(
            f"Config overrides from CLI: {', '.join(shown)}",
            file=sys.stderr,
        )

    try:
        asyncio.run(main(config_overrides=config_overrides))
    except RuntimeError:
        # Already reported on stderr by the lifespan
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
