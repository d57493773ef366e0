from __future__ import annotations

import asyncio
from types import SimpleNamespace
from typing import Any

import pytest

from core.types import Failure, FailureKind, Success, ToolCallRequest
from mcp_client import McpNotConnectedError, StdioServerConfig, StdioToolClient
from tools.tool_result_codec import encode_result


class _FakeSession:
    def __init__(self, result: Any = None, exc: Exception | None = None, delay: float = 0.0) -> None:
        self.result = result
        self.exc = exc
        self.delay = delay
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> Any:
        self.calls.append((name, arguments))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.exc is not None:
            raise self.exc
        return self.result


def _client(session: _FakeSession, timeout_s: float = 5.0) -> StdioToolClient:
    client = StdioToolClient(StdioServerConfig(command="buildchat", args=["serve"], timeout_s=timeout_s))
    client._session = session  # type: ignore[assignment]
    return client


def _text_result(text: str, is_error: bool = False) -> SimpleNamespace:
    return SimpleNamespace(content=[SimpleNamespace(type="text", text=text)], isError=is_error)


REQ = ToolCallRequest(id="c1", name="echo", arguments={"message": "hi"})


def test_invoke_decodes_payload() -> None:
    session = _FakeSession(_text_result(encode_result(Success(payload={"text": "hi"}))))

    res = asyncio.run(_client(session).invoke_request(REQ))

    assert res == Success(payload={"text": "hi"})
    assert session.calls == [("echo", {"message": "hi"})]


def test_invoke_keeps_remote_failure_kind() -> None:
    session = _FakeSession(_text_result(encode_result(Failure(FailureKind.VALIDATION_ERROR, "message is required"))))

    res = asyncio.run(_client(session).invoke_request(REQ))

    assert res == Failure(FailureKind.VALIDATION_ERROR, "message is required")


def test_protocol_error_text_is_internal_error() -> None:
    session = _FakeSession(_text_result("Unknown tool: echo", is_error=True))

    res = asyncio.run(_client(session).invoke_request(REQ))

    assert res == Failure(FailureKind.INTERNAL_ERROR, "Unknown tool: echo")


def test_transport_exception_is_internal_error() -> None:
    session = _FakeSession(exc=ConnectionResetError("pipe closed"))

    res = asyncio.run(_client(session).invoke_request(REQ))

    assert isinstance(res, Failure)
    assert res.kind is FailureKind.INTERNAL_ERROR
    assert "pipe closed" in res.message


def test_timeout_is_cancelled() -> None:
    session = _FakeSession(_text_result("{}"), delay=1.0)

    res = asyncio.run(_client(session, timeout_s=0.01).invoke_request(REQ))

    assert isinstance(res, Failure)
    assert res.kind is FailureKind.CANCELLED


def test_invoke_before_connect_raises() -> None:
    client = StdioToolClient(StdioServerConfig(command="buildchat"))

    with pytest.raises(McpNotConnectedError):
        asyncio.run(client.invoke_request(REQ))
    assert client.catalog() == []
