"""MCP server surface: stdio server, lifespan and tool handlers."""
