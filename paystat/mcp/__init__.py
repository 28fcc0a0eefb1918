"""Pay Stat MCP server."""
