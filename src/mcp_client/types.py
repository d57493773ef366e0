from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class StdioServerConfig:
    """How to launch the tool server as a child process speaking MCP over stdio."""

    command: str
    args: list[str] = field(default_factory=list)
    env: dict[str, str] | None = None
    timeout_s: float = 120.0
