"""Tool system: registry, invoker, result codec and built-in tools."""

from __future__ import annotations

from .invoker import ToolInvoker
from .registry import ToolDescriptor, ToolParam, ToolRegistry

__all__ = ["ToolDescriptor", "ToolInvoker", "ToolParam", "ToolRegistry"]
