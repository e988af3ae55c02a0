"""MCP server for codeindex."""

from codeindex.server.mcp_server import create_mcp_server

__all__ = ["create_mcp_server"]
