"""ToolSpec and ToolRegistry for read-only tool filtering.

Key concepts:
- ToolSpec: Immutable dataclass linking a Tool definition, the permissions
  it needs, and an async handler with signature (app, args) -> CallToolResult.
- ToolRegistry: Filters specs by allowed permissions at construction time,
  then provides list_tools() and call_tool() dispatch with error translation.

Permissions are coarse: ``POST_VIEW`` / ``POST_WRITE`` for the local
ledger and ``SYNC_VIEW`` / ``SYNC_WRITE`` for remote platforms.  A
read-only server allows only the two ``*_VIEW`` permissions.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

import mcp.types as types

from ...errors import SyncError

if TYPE_CHECKING:
    from ..lifespan import AppContext

logger = logging.getLogger(__name__)

POST_VIEW = "POST_VIEW"
POST_WRITE = "POST_WRITE"
SYNC_VIEW = "SYNC_VIEW"
SYNC_WRITE = "SYNC_WRITE"

READ_ONLY_PERMISSIONS = frozenset({POST_VIEW, SYNC_VIEW})


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """Immutable specification for a single MCP tool.

    Attributes:
        tool: The MCP Tool definition (name, description, inputSchema).
        permissions: Permissions required to use this tool.
            Empty frozenset means the tool is always available.
        handler: Async handler with signature (app, args) -> CallToolResult.
    """

    tool: types.Tool
    permissions: frozenset[str]
    handler: Callable[[AppContext, dict], Awaitable[types.CallToolResult]]


class ToolRegistry:
    """Registry of ToolSpecs with optional permission-based filtering.

    If allowed_permissions is None, all specs are included.  Otherwise a
    spec is included only if its permissions are empty or a subset of
    allowed_permissions.
    """

    def __init__(
        self,
        specs: list[ToolSpec],
        allowed_permissions: frozenset[str] | None = None,
    ):
        self._specs: dict[str, ToolSpec] = {}
        for spec in specs:
            if (
                allowed_permissions is None
                or not spec.permissions
                or spec.permissions <= allowed_permissions
            ):
                self._specs[spec.tool.name] = spec

    def list_tools(self) -> list[types.Tool]:
        """Return list of types.Tool for all registered (permitted) specs."""
        return [spec.tool for spec in self._specs.values()]

    def tool_count(self) -> int:
        return len(self._specs)

    async def call_tool(
        self,
        name: str,
        arguments: dict | None,
        app: AppContext,
    ) -> types.CallToolResult:
        """Dispatch a tool call to its handler.

        Engine errors, validation errors and unexpected exceptions are
        translated into structured CallToolResult responses with
        corrective actions.

        Raises:
            ValueError: If tool name is not registered (unknown or filtered out).
        """
        from .errors import build_error_response, translate_sync_error

        spec = self._specs.get(name)
        if spec is None:
            raise ValueError(f"Unknown tool: {name}")
        args = arguments or {}
        try:
            return await spec.handler(app, args)
        except SyncError as e:
            logger.warning("%s failed (%s): %s", name, e.error_type, e)
            return translate_sync_error(e)
        except ValueError as e:
            return build_error_response(
                "validation_error",
                str(e),
                "Check parameter values and retry.",
            )
        except Exception as e:
            logger.exception("Unexpected error in tool %s", name)
            return build_error_response(
                "server_error",
                str(e),
                "Check the server log and retry later.",
            )
