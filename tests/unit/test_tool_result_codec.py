from __future__ import annotations

import json
from dataclasses import dataclass

import pytest

from core.types import ConversationMessage, Failure, FailureKind, Role, Success, ToolCallRequest
from tools.tool_messages import result_from_tool_message, to_openai_messages, tool_message_from_result
from tools.tool_result_codec import decode_result, encode_result, make_payload, payload_from_output


@dataclass
class _Row:
    title: str
    duration_ms: float


def test_payload_from_output_shapes() -> None:
    assert payload_from_output("hi") == {"text": "hi"}
    assert payload_from_output([1, 2]) == {"value": [1, 2]}
    assert payload_from_output(_Row("a", 1.5)) == {"title": "a", "duration_ms": 1.5}
    assert payload_from_output({"rows": (_Row("b", 0.0),)}) == {"rows": [{"title": "b", "duration_ms": 0.0}]}


def test_make_payload_keys() -> None:
    ok = make_payload(result=Success(payload={"a": 1}), meta={"m": 1})
    bad = make_payload(result=Failure(FailureKind.NOT_FOUND, "gone"), meta={})

    assert set(ok.keys()) == {"ok", "text", "data", "error", "meta"}
    assert ok["ok"] is True and ok["error"] is None and ok["data"] == {"a": 1}
    assert bad["ok"] is False and bad["data"] == {}
    assert bad["error"] == {"kind": "not_found", "message": "gone"}


@pytest.mark.parametrize("kind", list(FailureKind))
def test_failure_roundtrip_every_kind(kind: FailureKind) -> None:
    original = Failure(kind, f"{kind.value} happened")
    assert decode_result(encode_result(original)) == original


def test_success_roundtrip() -> None:
    original = Success(payload={"results": [{"title": "LoginTests.Smoke", "duration_ms": 120.5}]})
    assert decode_result(encode_result(original, meta={"tool": "t"})) == original


def test_decode_garbage_is_internal_error() -> None:
    res = decode_result("not json")
    assert isinstance(res, Failure)
    assert res.kind is FailureKind.INTERNAL_ERROR

    res = decode_result(json.dumps({"ok": False, "error": {"kind": "exploded", "message": "?"}}))
    assert isinstance(res, Failure)
    assert res.kind is FailureKind.INTERNAL_ERROR


def test_tool_message_carries_request_and_payload() -> None:
    req = ToolCallRequest(id="call_1", name="echo", arguments={"message": "hi"})
    msg = tool_message_from_result(req, Success(payload={"text": "hi"}))

    assert msg.role is Role.TOOL
    assert msg.call_id == "call_1"
    assert msg.tool_name == "echo"
    assert msg.arguments == {"message": "hi"}
    assert isinstance(msg.content, dict)
    assert msg.content["meta"] == {"tool_name": "echo", "call_id": "call_1"}
    assert result_from_tool_message(msg) == Success(payload={"text": "hi"})


def test_to_openai_messages_synthesizes_tool_call_turn() -> None:
    r1 = ToolCallRequest(id="c1", name="echo", arguments={"message": "a"})
    r2 = ToolCallRequest(id="c2", name="get_utc_now", arguments={})
    history = [
        ConversationMessage.user("hello"),
        tool_message_from_result(r1, Success(payload={"text": "a"})),
        tool_message_from_result(r2, Failure(FailureKind.INTERNAL_ERROR, "x")),
        ConversationMessage.assistant("done"),
    ]

    out = to_openai_messages(history, system_prompt="sys")

    assert [m["role"] for m in out] == ["system", "user", "assistant", "tool", "tool", "assistant"]
    calls = out[2]["tool_calls"]
    assert [c["id"] for c in calls] == ["c1", "c2"]
    assert json.loads(calls[0]["function"]["arguments"]) == {"message": "a"}
    assert out[3]["tool_call_id"] == "c1"
    assert json.loads(out[4]["content"])["error"]["kind"] == "internal_error"
    assert out[5]["content"] == "done"


def test_to_openai_messages_keeps_tool_rounds_apart() -> None:
    r1 = ToolCallRequest(id="c1", name="echo", arguments={"message": "a"})
    r2 = ToolCallRequest(id="c2", name="echo", arguments={"message": "b"})
    history = [
        ConversationMessage.user("hello"),
        tool_message_from_result(r1, Success(payload={"text": "a"}), tool_round=1),
        tool_message_from_result(r2, Success(payload={"text": "b"}), tool_round=2),
        ConversationMessage.assistant("done"),
    ]

    out = to_openai_messages(history)

    assert [m["role"] for m in out] == ["user", "assistant", "tool", "assistant", "tool", "assistant"]
    assert [c["id"] for c in out[1]["tool_calls"]] == ["c1"]
    assert out[2]["tool_call_id"] == "c1"
    assert [c["id"] for c in out[3]["tool_calls"]] == ["c2"]
    assert out[4]["tool_call_id"] == "c2"
