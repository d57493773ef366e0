from __future__ import annotations

import json
from typing import Any, Iterable

from core.types import ConversationMessage, Role, ToolCallRequest, ToolInvocationResult

from .tool_result_codec import decode_result, encode_result, loads_payload


def tool_message_from_result(
    request: ToolCallRequest, result: ToolInvocationResult, *, tool_round: int | None = None
) -> ConversationMessage:
    """Build the tool-role history entry for one invocation.

    Content is the structured payload (see tool_result_codec.make_payload) so
    the model sees failures as data it can react to.
    """

    content = loads_payload(encode_result(result, meta={"tool_name": request.name, "call_id": request.id}))
    return ConversationMessage(
        role=Role.TOOL,
        content=content,
        call_id=request.id,
        tool_name=request.name,
        arguments=dict(request.arguments),
        tool_round=tool_round,
    )


def result_from_tool_message(message: ConversationMessage) -> ToolInvocationResult:
    content = message.content
    text = content if isinstance(content, str) else json.dumps(content, ensure_ascii=False)
    return decode_result(text)


def _assistant_tool_calls(group: list[ConversationMessage]) -> dict[str, Any]:
    return {
        "role": "assistant",
        "content": None,
        "tool_calls": [
            {
                "id": m.call_id,
                "type": "function",
                "function": {
                    "name": m.tool_name,
                    "arguments": json.dumps(m.arguments or {}, ensure_ascii=False),
                },
            }
            for m in group
        ],
    }


def to_openai_messages(
    history: Iterable[ConversationMessage], *, system_prompt: str | None = None
) -> list[dict[str, Any]]:
    """Render history as OpenAI chat messages.

    History stores only user/assistant/tool entries; each run of consecutive
    tool entries from the same model round is preceded by a synthesized assistant
    message carrying the matching tool_calls, as the chat completions protocol
    requires. Separate rounds stay separate requests so their order survives.
    """

    out: list[dict[str, Any]] = []
    if system_prompt:
        out.append({"role": "system", "content": system_prompt})

    group: list[ConversationMessage] = []

    def flush() -> None:
        if not group:
            return
        out.append(_assistant_tool_calls(group))
        for m in group:
            content = m.content if isinstance(m.content, str) else json.dumps(m.content, ensure_ascii=False)
            out.append({"role": "tool", "tool_call_id": m.call_id, "name": m.tool_name, "content": content})
        group.clear()

    for m in history:
        if m.role is Role.TOOL:
            if group and group[-1].tool_round != m.tool_round:
                flush()
            group.append(m)
            continue
        flush()
        content = m.content if isinstance(m.content, str) else json.dumps(m.content, ensure_ascii=False)
        out.append({"role": m.role.value, "content": content})
    flush()
    return out
