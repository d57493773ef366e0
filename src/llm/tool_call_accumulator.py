"""Streaming tool-call argument accumulator.

OpenAI-compatible streaming delivers each tool call in fragments: the first
fragment for a given ``index`` carries the id and function name, later ones only
append to the JSON arguments string. Calls are finalized once the stream ends.

All parsing is best-effort: invalid tool calls should not crash the process.
"""

from __future__ import annotations

import json
from typing import Any

from core.types import InvalidToolCall, ToolCallRequest
from observability.ids import new_call_id


class ToolCallAccumulator:
    """Accumulate streamed tool-call deltas into ToolCallRequest objects."""

    def __init__(self) -> None:
        self._buffers: dict[int, str] = {}
        self._ids: dict[int, str] = {}
        self._names: dict[int, str] = {}
        self._seen_order: list[int] = []

    def add_delta(self, deltas: list[dict[str, Any]]) -> None:
        """Consume ``choices[0].delta.tool_calls`` normalized to dicts.

        Expected keys (best-effort):
        - index: int (falls back to the position within the delta list)
        - id: str (first fragment only)
        - function: {"name": str, "arguments": str fragment}
        """

        for pos, d in enumerate(deltas):
            if not isinstance(d, dict):
                continue
            idx = d.get("index")
            if not isinstance(idx, int):
                idx = pos

            if idx not in self._buffers:
                self._buffers[idx] = ""
                self._seen_order.append(idx)

            tc_id = d.get("id")
            if isinstance(tc_id, str) and tc_id and idx not in self._ids:
                self._ids[idx] = tc_id

            fn = d.get("function") or {}
            if not isinstance(fn, dict):
                continue
            name = fn.get("name")
            if isinstance(name, str) and name and idx not in self._names:
                self._names[idx] = name
            args = fn.get("arguments")
            if isinstance(args, str) and args:
                self._buffers[idx] += args

    def finalize(self) -> tuple[list[ToolCallRequest], list[InvalidToolCall]]:
        """Return (tool_calls, invalid_tool_calls) in the order the model emitted them."""

        tool_calls: list[ToolCallRequest] = []
        invalid: list[InvalidToolCall] = []

        for idx in self._seen_order:
            raw = self._buffers.get(idx, "")
            name = self._names.get(idx)
            call_id = self._ids.get(idx) or new_call_id()

            try:
                parsed = json.loads(raw) if raw.strip() else {}
                if not isinstance(parsed, dict):
                    raise ValueError("tool arguments must be a JSON object")
                if not name:
                    raise ValueError("missing tool name")
                tool_calls.append(ToolCallRequest(id=call_id, name=name, arguments=parsed))
            except ValueError as exc:
                invalid.append(InvalidToolCall(id=call_id, name=name, raw_arguments=raw, error=str(exc)))

        return tool_calls, invalid
