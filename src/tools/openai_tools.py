from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable

if TYPE_CHECKING:
    from .registry import ToolDescriptor


def openai_tool_specs(descriptors: Iterable[ToolDescriptor]) -> list[dict[str, Any]]:
    """Return OpenAI-compatible tool specs for registered descriptors.

    Note: OpenAI-compatible format:
    {
      "type": "function",
      "function": {
        "name": "tool_name",
        "description": "...",
        "parameters": { ...JSON Schema... }
      }
    }
    """

    return [
        {
            "type": "function",
            "function": {
                "name": d.name,
                "description": d.description,
                "parameters": d.input_schema(),
            },
        }
        for d in descriptors
    ]


def spec_from_schema(*, name: str, description: str | None, input_schema: dict[str, Any] | None) -> dict[str, Any]:
    """Build a spec from a remote (MCP) tool listing."""

    parameters = input_schema if isinstance(input_schema, dict) and input_schema.get("type") == "object" else None
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description or "",
            "parameters": parameters or {"type": "object", "properties": {}, "additionalProperties": False},
        },
    }
