from __future__ import annotations

import dataclasses
import json
from datetime import date, datetime
from enum import Enum
from typing import Any

from core.types import Failure, FailureKind, Success, ToolInvocationResult

_TEXT_LIMIT = 2000


def _is_json_primitive(obj: Any) -> bool:
    return obj is None or isinstance(obj, (str, int, float, bool))


def _is_json_friendly(obj: Any) -> bool:
    if _is_json_primitive(obj):
        return True
    if isinstance(obj, list):
        return all(_is_json_friendly(v) for v in obj)
    if isinstance(obj, dict):
        return all(isinstance(k, str) and _is_json_friendly(v) for k, v in obj.items())
    return False


def to_jsonable(obj: Any) -> Any:
    """Convert handler output into JSON-friendly data (dataclasses, enums, datetimes, tuples)."""

    if isinstance(obj, Enum):
        return obj.value
    if _is_json_primitive(obj):
        return obj
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: to_jsonable(getattr(obj, f.name)) for f in dataclasses.fields(obj)}
    if isinstance(obj, dict):
        return {str(k): to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_jsonable(v) for v in obj]
    dump = getattr(obj, "model_dump", None)
    if callable(dump):
        return to_jsonable(dump(mode="json"))
    return repr(obj)


def payload_from_output(output: Any) -> dict[str, Any]:
    """Normalize a handler's return value into the Success payload record.

    Strings become ``{"text": ...}``; mappings and dataclasses stay structured;
    anything else is wrapped as ``{"value": ...}``.
    """

    data = to_jsonable(output)
    if isinstance(data, dict):
        return data
    if isinstance(data, str):
        return {"text": data}
    return {"value": data}


def make_payload(*, result: ToolInvocationResult, meta: dict[str, Any]) -> dict[str, Any]:
    """Create the canonical tool-message payload.

    Contract:
    - Always returns a JSON-friendly dict with keys: ok/text/data/error/meta.
    - `text` is short and model-readable.
    - `data` is the Success payload (empty on failure).
    - `error` is ``{"kind", "message"}`` on failure, otherwise None.
    """

    if isinstance(result, Success):
        data = result.payload if _is_json_friendly(result.payload) else to_jsonable(result.payload)
        text = json.dumps(data, ensure_ascii=False)
        if len(text) > _TEXT_LIMIT:
            text = text[:_TEXT_LIMIT] + "..."
        return {"ok": True, "text": text, "data": data, "error": None, "meta": to_jsonable(meta)}

    return {
        "ok": False,
        "text": f"{result.kind.value}: {result.message}",
        "data": {},
        "error": {"kind": result.kind.value, "message": result.message},
        "meta": to_jsonable(meta),
    }


def result_from_payload(payload: dict[str, Any]) -> ToolInvocationResult:
    """Inverse of make_payload."""

    if payload.get("ok") is True:
        data = payload.get("data")
        return Success(payload=data if isinstance(data, dict) else {"value": data})

    err = payload.get("error")
    if not isinstance(err, dict):
        return Failure(FailureKind.INTERNAL_ERROR, f"malformed tool payload: {payload!r}"[:_TEXT_LIMIT])
    try:
        kind = FailureKind(str(err.get("kind")))
    except ValueError:
        kind = FailureKind.INTERNAL_ERROR
    return Failure(kind, str(err.get("message", "")))


def dumps_payload(payload: dict[str, Any]) -> str:
    """Serialize payload for OpenAI tool message content.

    Content should always be a JSON string, never a Python repr.
    """

    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))


def loads_payload(text: str) -> dict[str, Any]:
    try:
        obj = json.loads(text)
    except json.JSONDecodeError:
        return {"ok": False, "error": {"kind": FailureKind.INTERNAL_ERROR.value, "message": "tool content is not JSON"}}
    if not isinstance(obj, dict):
        return {"ok": False, "error": {"kind": FailureKind.INTERNAL_ERROR.value, "message": "tool content is not an object"}}
    return obj


def encode_result(result: ToolInvocationResult, *, meta: dict[str, Any] | None = None) -> str:
    return dumps_payload(make_payload(result=result, meta=meta or {}))


def decode_result(text: str) -> ToolInvocationResult:
    return result_from_payload(loads_payload(text))
