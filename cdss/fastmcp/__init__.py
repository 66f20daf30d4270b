"""FastMCP module for the CDSS MCP Server."""
from .app import mcp, get_service, set_service

__all__ = ["mcp", "get_service", "set_service"]
