"""Model capability: OpenAI-compatible streaming chat client."""

from __future__ import annotations

from .client import ChatClient, FakeChatClient, ModelCapability
from .tool_call_accumulator import ToolCallAccumulator

__all__ = ["ChatClient", "FakeChatClient", "ModelCapability", "ToolCallAccumulator"]
