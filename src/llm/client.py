"""OpenAI-compatible chat client (the model capability).

Given the full history and the tool catalog, produce the next assistant
message, possibly naming tools to call. The default target is a local Ollama
server through its OpenAI-compatible endpoint.
"""

from __future__ import annotations

import json
import time
from typing import Any, Protocol, Sequence

from openai import AsyncOpenAI

from core.config import LlmConfig
from core.types import ConversationMessage, ModelResponse, Role, ToolCallRequest
from observability.logging import get_logger
from tools.tool_messages import to_openai_messages

from .tool_call_accumulator import ToolCallAccumulator


class ModelCapability(Protocol):
    async def complete(
        self,
        *,
        history: Sequence[ConversationMessage],
        tools: list[dict[str, Any]] | None,
    ) -> ModelResponse: ...


class ChatClient:
    """Streaming chat-completions adapter.

    Tool-call arguments are accumulated from stream deltas; calls whose
    arguments are not valid JSON are returned in invalid_tool_calls (non-fatal).
    """

    def __init__(self, cfg: LlmConfig, *, client: AsyncOpenAI | None = None) -> None:
        self._cfg = cfg
        self._client = client or AsyncOpenAI(
            api_key=cfg.api_key.get_secret_value(),
            base_url=cfg.base_url,
            timeout=cfg.timeout_s,
            max_retries=cfg.max_retries,
        )
        self._log = get_logger("buildchat.llm")

    async def complete(
        self,
        *,
        history: Sequence[ConversationMessage],
        tools: list[dict[str, Any]] | None,
    ) -> ModelResponse:
        messages = to_openai_messages(history, system_prompt=self._cfg.system_prompt)
        kwargs: dict[str, Any] = {
            "model": self._cfg.model,
            "messages": messages,
            "temperature": self._cfg.temperature,
            "stream": True,
        }
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"

        t0 = time.perf_counter()
        acc = ToolCallAccumulator()
        text_parts: list[str] = []

        stream = await self._client.chat.completions.create(**kwargs)
        async for ev in stream:
            choices = getattr(ev, "choices", None) or []
            if not choices:
                continue
            delta = getattr(choices[0], "delta", None)
            if delta is None:
                continue

            content = getattr(delta, "content", None)
            if isinstance(content, str) and content:
                text_parts.append(content)

            delta_tool_calls = getattr(delta, "tool_calls", None)
            if delta_tool_calls:
                acc.add_delta([_normalize_delta(tc) for tc in delta_tool_calls])

        tool_calls, invalid = acc.finalize()
        self._log.info(
            "model_turn_complete",
            latency_ms=round((time.perf_counter() - t0) * 1000, 2),
            assistant_text_len=len("".join(text_parts)),
            tool_calls=len(tool_calls),
            invalid_tool_calls=len(invalid),
        )
        return ModelResponse(text="".join(text_parts), tool_calls=tool_calls, invalid_tool_calls=invalid)


def _normalize_delta(tc: Any) -> dict[str, Any]:
    if isinstance(tc, dict):
        return tc

    out: dict[str, Any] = {"index": getattr(tc, "index", None), "id": getattr(tc, "id", None)}
    fn = getattr(tc, "function", None)
    if fn is not None:
        out["function"] = {"name": getattr(fn, "name", None), "arguments": getattr(fn, "arguments", None)}
    return out


class FakeChatClient:
    """Offline stub for running the chat loop without a model server.

    Messages of the form ``/tool <name> <json-args>`` become a tool call; after
    a tool result the stub summarizes it; anything else is echoed.
    """

    def __init__(self) -> None:
        self._calls = 0

    async def complete(
        self,
        *,
        history: Sequence[ConversationMessage],
        tools: list[dict[str, Any]] | None,
    ) -> ModelResponse:
        self._calls += 1
        last = history[-1] if history else None
        if last is None:
            return ModelResponse(text="(fake) hello!")

        if last.role is Role.TOOL:
            content = last.content
            text = content.get("text", "") if isinstance(content, dict) else str(content)
            return ModelResponse(text=f"(fake) {last.tool_name} returned: {text}")

        text = str(last.content)
        if tools and text.startswith("/tool "):
            _, _, rest = text.partition(" ")
            name, _, raw = rest.strip().partition(" ")
            try:
                args = json.loads(raw) if raw.strip() else {}
            except ValueError:
                args = {}
            return ModelResponse(
                tool_calls=[ToolCallRequest(id=f"fake_{self._calls}", name=name, arguments=args if isinstance(args, dict) else {})]
            )

        return ModelResponse(text=f"(fake) you said: {text}")
