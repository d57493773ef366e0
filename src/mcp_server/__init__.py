"""Expose the tool registry as an MCP server over stdio."""

from __future__ import annotations

from .server import build_server, serve_stdio

__all__ = ["build_server", "serve_stdio"]
