from __future__ import annotations

import asyncio

import pytest

from core.types import Failure, FailureKind, Success, ToolCallRequest
from tools.invoker import ArgumentError, ToolInvoker, coerce_argument
from tools.registry import ToolDescriptor, ToolParam, ToolRegistry


def _invoker(*descriptors: ToolDescriptor, timeout_s: float | None = None) -> ToolInvoker:
    reg = ToolRegistry()
    for d in descriptors:
        reg.register(d)
    return ToolInvoker(reg, timeout_s=timeout_s)


def test_unknown_tool_is_not_found() -> None:
    res = asyncio.run(_invoker().invoke("nope", {}))

    assert isinstance(res, Failure)
    assert res.kind is FailureKind.NOT_FOUND
    assert "nope" in res.message


def test_missing_required_param_never_runs_handler() -> None:
    calls: list[dict] = []

    def handler(project_name: str, definition_name: str) -> str:
        calls.append({"p": project_name, "d": definition_name})
        return "ran"

    tool = ToolDescriptor(
        name="lookup",
        description="d",
        handler=handler,
        params=(
            ToolParam("project_name", description="the Azure DevOps project name"),
            ToolParam("definition_name", description="the pipeline name"),
        ),
    )

    res = asyncio.run(_invoker(tool).invoke("lookup", {"project_name": "P"}))

    assert isinstance(res, Failure)
    assert res.kind is FailureKind.VALIDATION_ERROR
    assert res.message.startswith("definition_name is required")
    assert "Ask the user" in res.message
    assert calls == []


def test_arguments_are_coerced_and_undeclared_dropped() -> None:
    seen: dict = {}

    def handler(count: int, ratio: float, verbose: bool, label: str = "x") -> dict:
        seen.update(count=count, ratio=ratio, verbose=verbose, label=label)
        return {"ok": True}

    tool = ToolDescriptor(
        name="t",
        description="d",
        handler=handler,
        params=(
            ToolParam("count", type="integer"),
            ToolParam("ratio", type="number"),
            ToolParam("verbose", type="boolean"),
            ToolParam("label", required=False, default="dflt"),
        ),
    )

    res = asyncio.run(_invoker(tool).invoke("t", {"count": "3", "ratio": 2, "verbose": "yes", "extra": 1}))

    assert isinstance(res, Success)
    assert res.payload == {"ok": True}
    assert seen == {"count": 3, "ratio": 2.0, "verbose": True, "label": "dflt"}


def test_malformed_value_is_validation_error() -> None:
    tool = ToolDescriptor(name="t", description="d", handler=lambda count: count, params=(ToolParam("count", type="integer"),))

    res = asyncio.run(_invoker(tool).invoke("t", {"count": "many"}))

    assert isinstance(res, Failure)
    assert res.kind is FailureKind.VALIDATION_ERROR
    assert "count" in res.message


@pytest.mark.parametrize(
    "ptype, value",
    [("integer", True), ("integer", 1.5), ("number", "nan"), ("boolean", "maybe"), ("string", None)],
)
def test_coerce_argument_rejects(ptype: str, value: object) -> None:
    with pytest.raises(ArgumentError):
        coerce_argument(ToolParam("x", type=ptype), value)


def test_handler_exception_is_internal_error() -> None:
    def boom() -> None:
        raise RuntimeError("kaput")

    res = asyncio.run(_invoker(ToolDescriptor(name="boom", description="d", handler=boom)).invoke("boom", {}))

    assert isinstance(res, Failure)
    assert res.kind is FailureKind.INTERNAL_ERROR
    assert res.message == "RuntimeError: kaput"


def test_async_handler_and_string_payload() -> None:
    async def handler(message: str) -> str:
        await asyncio.sleep(0)
        return message.upper()

    tool = ToolDescriptor(name="up", description="d", handler=handler, params=(ToolParam("message"),))
    res = asyncio.run(_invoker(tool).invoke_request(ToolCallRequest(id="c1", name="up", arguments={"message": "hi"})))

    assert res == Success(payload={"text": "HI"})


def test_timeout_is_cancelled_failure() -> None:
    async def slow() -> str:
        await asyncio.sleep(10)
        return "late"

    tool = ToolDescriptor(name="slow", description="d", handler=slow)
    res = asyncio.run(_invoker(tool, timeout_s=0.01).invoke("slow", {}))

    assert isinstance(res, Failure)
    assert res.kind is FailureKind.CANCELLED


def test_caller_cancellation_propagates() -> None:
    async def main() -> None:
        gate = asyncio.Event()

        async def slow() -> str:
            gate.set()
            await asyncio.sleep(10)
            return "late"

        inv = _invoker(ToolDescriptor(name="slow", description="d", handler=slow))
        task = asyncio.create_task(inv.invoke("slow", {}))
        await gate.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(main())


def test_catalog_lists_openai_specs_in_order() -> None:
    inv = _invoker(
        ToolDescriptor(name="b", description="second", handler=lambda: None),
        ToolDescriptor(name="a", description="first", handler=lambda: None),
    )

    specs = inv.catalog()
    assert [s["function"]["name"] for s in specs] == ["b", "a"]
    assert specs[0]["type"] == "function"
    assert specs[0]["function"]["parameters"]["type"] == "object"
