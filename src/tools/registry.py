"""Tool registry: explicit descriptors, registration and lookup.

Descriptors are registered once by an initialization routine (see
tools.builtin.register_builtin_tools) and only read afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Union

from core.errors import DuplicateToolError, UnknownToolError
from observability.logging import get_logger

ToolHandler = Callable[..., Union[Any, Awaitable[Any]]]

PARAM_TYPES = ("string", "integer", "number", "boolean")


@dataclass(frozen=True, slots=True)
class ToolParam:
    name: str
    type: str = "string"
    description: str = ""
    required: bool = True
    default: Any = None

    def __post_init__(self) -> None:
        if self.type not in PARAM_TYPES:
            raise ValueError(f"unsupported parameter type {self.type!r} for {self.name!r}")

    def json_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {"type": self.type}
        if self.description:
            schema["description"] = self.description
        if not self.required and self.default is not None:
            schema["default"] = self.default
        return schema


@dataclass(frozen=True, slots=True)
class ToolDescriptor:
    name: str
    description: str
    handler: ToolHandler
    params: tuple[ToolParam, ...] = field(default_factory=tuple)

    def input_schema(self) -> dict[str, Any]:
        """JSON schema of the arguments object."""

        return {
            "type": "object",
            "properties": {p.name: p.json_schema() for p in self.params},
            "required": [p.name for p in self.params if p.required],
            "additionalProperties": False,
        }


class ToolRegistry:
    def __init__(self) -> None:
        self._tools: dict[str, ToolDescriptor] = {}
        self._log = get_logger("buildchat.tools")

    def register(self, descriptor: ToolDescriptor) -> None:
        if descriptor.name in self._tools:
            raise DuplicateToolError(descriptor.name)
        self._tools[descriptor.name] = descriptor
        self._log.debug("tool_registered", tool=descriptor.name, params=[p.name for p in descriptor.params])

    def lookup(self, name: str) -> ToolDescriptor:
        try:
            return self._tools[name]
        except KeyError:
            raise UnknownToolError(name) from None

    def list(self) -> list[ToolDescriptor]:  # noqa: A003
        # dict preserves insertion order == registration order.
        return list(self._tools.values())

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
