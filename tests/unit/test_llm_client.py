from __future__ import annotations

import asyncio
from types import SimpleNamespace
from typing import Any

from pydantic import SecretStr

from core.config import LlmConfig
from core.types import ConversationMessage, Role, Success, ToolCallRequest
from llm.client import ChatClient, FakeChatClient
from tools.tool_messages import tool_message_from_result


def _event(content: str | None = None, tool_calls: list[Any] | None = None) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content, tool_calls=tool_calls))])


def _tc(index: int, id: str | None = None, name: str | None = None, arguments: str | None = None) -> SimpleNamespace:
    return SimpleNamespace(index=index, id=id, function=SimpleNamespace(name=name, arguments=arguments))


class _Stream:
    def __init__(self, events: list[SimpleNamespace]) -> None:
        self._events = list(events)

    def __aiter__(self) -> "_Stream":
        return self

    async def __anext__(self) -> SimpleNamespace:
        if not self._events:
            raise StopAsyncIteration
        return self._events.pop(0)


class _FakeOpenAI:
    def __init__(self, events: list[SimpleNamespace]) -> None:
        self.kwargs: dict[str, Any] = {}

        async def create(**kwargs: Any) -> _Stream:
            self.kwargs = kwargs
            return _Stream(events)

        self.chat = SimpleNamespace(completions=SimpleNamespace(create=create))


def _cfg() -> LlmConfig:
    return LlmConfig(api_key=SecretStr("k"), system_prompt="be brief")


def test_chat_client_streams_text_without_tools() -> None:
    fake = _FakeOpenAI([_event("Hel"), _event("lo"), SimpleNamespace(choices=[])])
    client = ChatClient(_cfg(), client=fake)

    resp = asyncio.run(client.complete(history=[ConversationMessage.user("hi")], tools=None))

    assert resp.text == "Hello"
    assert resp.wants_tools is False
    assert "tools" not in fake.kwargs
    assert fake.kwargs["stream"] is True
    assert fake.kwargs["model"] == "llama3.2:3b"
    assert fake.kwargs["messages"][0] == {"role": "system", "content": "be brief"}


def test_chat_client_accumulates_tool_calls() -> None:
    fake = _FakeOpenAI(
        [
            _event(tool_calls=[_tc(0, id="call_9", name="get_test_case_results", arguments='{"project_name":')]),
            _event(tool_calls=[_tc(0, arguments=' "P"}')]),
        ]
    )
    tools = [{"type": "function", "function": {"name": "get_test_case_results", "parameters": {"type": "object"}}}]
    client = ChatClient(_cfg(), client=fake)

    resp = asyncio.run(client.complete(history=[ConversationMessage.user("results?")], tools=tools))

    assert resp.tool_calls == [ToolCallRequest(id="call_9", name="get_test_case_results", arguments={"project_name": "P"})]
    assert fake.kwargs["tools"] == tools
    assert fake.kwargs["tool_choice"] == "auto"


def test_fake_chat_client_tool_roundtrip() -> None:
    fake = FakeChatClient()
    tools = [{"type": "function", "function": {"name": "echo"}}]

    first = asyncio.run(fake.complete(history=[ConversationMessage.user('/tool echo {"message": "hi"}')], tools=tools))
    assert first.tool_calls[0].name == "echo"
    assert first.tool_calls[0].arguments == {"message": "hi"}

    tool_msg = tool_message_from_result(first.tool_calls[0], Success(payload={"text": "hi"}))
    assert tool_msg.role is Role.TOOL
    second = asyncio.run(fake.complete(history=[tool_msg], tools=tools))
    assert second.text.startswith("(fake) echo returned:")

    plain = asyncio.run(fake.complete(history=[ConversationMessage.user("hello")], tools=tools))
    assert plain.text == "(fake) you said: hello"
