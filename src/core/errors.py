from __future__ import annotations


class BuildChatError(Exception):
    """Base exception for this project."""


class ConfigError(BuildChatError):
    """Raised when configuration is invalid or incomplete."""

    def __init__(self, message: str, *, path: str | None = None):
        super().__init__(f"{path}: {message}" if path else message)
        self.path = path


class DuplicateToolError(BuildChatError):
    """Raised when a tool name is registered twice."""

    def __init__(self, name: str) -> None:
        super().__init__(f"tool already registered: {name!r}")
        self.name = name


class UnknownToolError(BuildChatError):
    def __init__(self, name: str) -> None:
        super().__init__(f"unknown tool: {name!r}")
        self.name = name


class TurnFailed(BuildChatError):
    """The model capability failed; the turn ended without an assistant message."""

    def __init__(self, message: str, *, cause: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause
