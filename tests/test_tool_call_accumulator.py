from __future__ import annotations

from llm.tool_call_accumulator import ToolCallAccumulator


def test_accumulator_parses_fragmented_json_args() -> None:
    acc = ToolCallAccumulator()

    acc.add_delta([{"index": 0, "id": "call_1", "function": {"name": "echo", "arguments": "{\"message\": \"hi\""}}])
    acc.add_delta([{"index": 0, "function": {"arguments": "}"}}])

    tool_calls, invalid = acc.finalize()

    assert invalid == []
    assert len(tool_calls) == 1
    assert tool_calls[0].id == "call_1"
    assert tool_calls[0].name == "echo"
    assert tool_calls[0].arguments == {"message": "hi"}


def test_accumulator_keeps_invalid_json_non_fatal() -> None:
    acc = ToolCallAccumulator()

    acc.add_delta([{"index": 0, "id": "call_1", "function": {"name": "echo", "arguments": "{\"message\":"}}])

    tool_calls, invalid = acc.finalize()

    assert tool_calls == []
    assert len(invalid) == 1
    assert invalid[0].id == "call_1"
    assert invalid[0].name == "echo"
    assert invalid[0].raw_arguments.startswith("{\"message\":")


def test_accumulator_interleaved_calls_keep_emission_order() -> None:
    acc = ToolCallAccumulator()

    acc.add_delta(
        [
            {"index": 1, "id": "b", "function": {"name": "reverse_echo", "arguments": "{\"message\":"}},
            {"index": 0, "id": "a", "function": {"name": "echo", "arguments": "{}"}},
        ]
    )
    acc.add_delta([{"index": 1, "function": {"arguments": " \"x\"}"}}])

    tool_calls, invalid = acc.finalize()

    assert invalid == []
    assert [c.id for c in tool_calls] == ["b", "a"]
    assert tool_calls[0].arguments == {"message": "x"}


def test_accumulator_generates_missing_id_and_accepts_empty_args() -> None:
    acc = ToolCallAccumulator()

    acc.add_delta([{"index": 0, "function": {"name": "get_utc_now"}}])

    tool_calls, invalid = acc.finalize()

    assert invalid == []
    assert tool_calls[0].id.startswith("call_")
    assert tool_calls[0].arguments == {}


def test_accumulator_rejects_non_object_args() -> None:
    acc = ToolCallAccumulator()

    acc.add_delta([{"index": 0, "id": "c", "function": {"name": "echo", "arguments": "[1, 2]"}}])

    tool_calls, invalid = acc.finalize()

    assert tool_calls == []
    assert "JSON object" in invalid[0].error
