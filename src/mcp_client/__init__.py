"""MCP (Model Context Protocol) client-side integration.

This package intentionally avoids the top-level name `mcp` to prevent shadowing
the upstream MCP Python SDK module (`import mcp`).
"""

from __future__ import annotations

from .client import StdioToolClient
from .errors import McpClientError, McpNotConnectedError
from .types import StdioServerConfig

__all__ = [
    "McpClientError",
    "McpNotConnectedError",
    "StdioServerConfig",
    "StdioToolClient",
]
