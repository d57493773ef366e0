from __future__ import annotations

import asyncio
import inspect
import math
import time
from typing import Any

from core.errors import UnknownToolError
from core.types import Failure, FailureKind, Success, ToolCallRequest, ToolInvocationResult
from observability import set_call_id
from observability.logging import get_logger

from .openai_tools import openai_tool_specs
from .registry import ToolDescriptor, ToolParam, ToolRegistry
from .tool_result_codec import payload_from_output

_TRUE = {"true", "yes", "1"}
_FALSE = {"false", "no", "0"}


class ArgumentError(ValueError):
    """A raw argument could not be coerced to its declared type."""


def coerce_argument(param: ToolParam, value: Any) -> Any:
    t = param.type
    if t == "string":
        if isinstance(value, str):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        raise ArgumentError(f"{param.name} must be a string")

    if t == "integer":
        if isinstance(value, bool):
            raise ArgumentError(f"{param.name} must be an integer")
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                pass
        raise ArgumentError(f"{param.name} must be an integer")

    if t == "number":
        if isinstance(value, bool):
            raise ArgumentError(f"{param.name} must be a number")
        if isinstance(value, (int, float)):
            return float(value)
        if isinstance(value, str):
            try:
                out = float(value.strip())
            except ValueError:
                out = math.nan
            if math.isfinite(out):
                return out
        raise ArgumentError(f"{param.name} must be a number")

    # boolean
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in _TRUE | _FALSE:
        return value.strip().lower() in _TRUE
    raise ArgumentError(f"{param.name} must be a boolean")


def _missing_message(descriptor: ToolDescriptor, param: ToolParam) -> str:
    # Phrased so the model can turn it into a question for the user.
    what = param.description or param.name
    return f"{param.name} is required by {descriptor.name}. Ask the user for: {what}."


def bind_arguments(descriptor: ToolDescriptor, raw_args: dict[str, Any]) -> dict[str, Any] | Failure:
    bound: dict[str, Any] = {}
    for param in descriptor.params:
        value = raw_args.get(param.name)
        if value is None:
            if param.required:
                return Failure(FailureKind.VALIDATION_ERROR, _missing_message(descriptor, param))
            bound[param.name] = param.default
            continue
        try:
            bound[param.name] = coerce_argument(param, value)
        except ArgumentError as e:
            return Failure(FailureKind.VALIDATION_ERROR, str(e))
    return bound


class ToolInvoker:
    """Validates, binds and executes registry tools; every outcome is a returned value.

    Caller cancellation (asyncio.CancelledError) is not a tool failure and is
    re-raised untouched. The per-call timeout yields Failure(cancelled).
    """

    def __init__(self, registry: ToolRegistry, *, timeout_s: float | None = None) -> None:
        self._registry = registry
        self._timeout_s = timeout_s
        self._log = get_logger("buildchat.invoker")

    def catalog(self) -> list[dict[str, Any]]:
        return openai_tool_specs(self._registry.list())

    async def invoke_request(self, request: ToolCallRequest) -> ToolInvocationResult:
        set_call_id(request.id)
        try:
            return await self.invoke(request.name, request.arguments)
        finally:
            set_call_id(None)

    async def invoke(self, name: str, raw_args: dict[str, Any] | None) -> ToolInvocationResult:
        try:
            descriptor = self._registry.lookup(name)
        except UnknownToolError as e:
            self._log.warning("tool_unknown", tool=name)
            return Failure(FailureKind.NOT_FOUND, f"{e}. Available tools: {self._names()}")

        bound = bind_arguments(descriptor, dict(raw_args or {}))
        if isinstance(bound, Failure):
            self._log.info("tool_rejected", tool=name, error=bound.message)
            return bound

        t0 = time.perf_counter()
        try:
            if self._timeout_s:
                result = await asyncio.wait_for(self._execute(descriptor, bound), timeout=self._timeout_s)
            else:
                result = await self._execute(descriptor, bound)
        except TimeoutError:
            self._log.warning("tool_timeout", tool=name, timeout_s=self._timeout_s)
            return Failure(FailureKind.CANCELLED, f"{name} timed out after {self._timeout_s}s")

        self._log.info(
            "tool_done",
            tool=name,
            ok=result.ok,
            latency_ms=round((time.perf_counter() - t0) * 1000, 2),
        )
        return result

    async def _execute(self, descriptor: ToolDescriptor, bound: dict[str, Any]) -> ToolInvocationResult:
        try:
            out = descriptor.handler(**bound)
            if inspect.isawaitable(out):
                out = await out
            return Success(payload=payload_from_output(out))
        except Exception as e:  # noqa: BLE001
            self._log.exception("tool_error", tool=descriptor.name)
            return Failure(FailureKind.INTERNAL_ERROR, f"{type(e).__name__}: {e}")

    def _names(self) -> str:
        return ", ".join(d.name for d in self._registry.list()) or "(none)"
