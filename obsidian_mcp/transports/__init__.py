"""Transport bindings for the protocol server."""

from obsidian_mcp.transports.base import Transport
from obsidian_mcp.transports.http import HttpTransport, McpEndpoint, RouteMatcher
from obsidian_mcp.transports.sessions import SessionManager
from obsidian_mcp.transports.stdio import StdioTransport

__all__ = [
    "HttpTransport",
    "McpEndpoint",
    "RouteMatcher",
    "SessionManager",
    "StdioTransport",
    "Transport",
]
