"""MCP server for docindex stores."""

from docindex.server.mcp_server import create_mcp_server

__all__ = ["create_mcp_server"]
