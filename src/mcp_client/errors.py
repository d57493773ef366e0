from __future__ import annotations

from core.errors import BuildChatError


class McpClientError(BuildChatError):
    """Transport or protocol failure talking to the tool server.

    Raised only while connecting; per-call failures are returned as
    Failure(internal_error) results instead.
    """

    def __init__(self, error_type: str, message: str, *, details: dict[str, str] | None = None):
        super().__init__(message)
        self.error_type = error_type
        self.message = message
        self.details = details or {}


class McpNotConnectedError(McpClientError):
    def __init__(self) -> None:
        super().__init__("not_connected", "MCP session is not connected; call connect() first")
