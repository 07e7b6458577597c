"""MCP tool handlers for posts and their synchronization.

Handlers wrap the ledger and the sync coordinator with async entry
points, text plus structured JSON output, and structured error responses.
"""

from .errors import build_error_response, translate_sync_error
from .posts import POST_SPECS, POST_TOOLS
from .registry import READ_ONLY_PERMISSIONS, ToolRegistry, ToolSpec
from .sync import SYNC_SPECS, SYNC_TOOLS

ALL_SPECS: list[ToolSpec] = POST_SPECS + SYNC_SPECS

__all__ = [
    "build_error_response",
    "translate_sync_error",
    # Registry
    "ToolSpec",
    "ToolRegistry",
    "READ_ONLY_PERMISSIONS",
    # Spec lists
    "ALL_SPECS",
    "POST_SPECS",
    "SYNC_SPECS",
    # Tool lists
    "POST_TOOLS",
    "SYNC_TOOLS",
]
