from __future__ import annotations

import asyncio
import inspect
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Protocol

from core.errors import TurnFailed
from core.types import (
    ConversationMessage,
    Failure,
    FailureKind,
    ModelResponse,
    ToolCallRequest,
    ToolInvocationResult,
)
from llm.client import ModelCapability
from observability import bind_context, get_logger, set_state
from observability.ids import new_session_id, new_trace_id
from tools.tool_messages import tool_message_from_result


class SessionState(str, Enum):
    AWAITING_USER_INPUT = "AwaitingUserInput"
    MODEL_TURN = "ModelTurn"
    TOOL_CALL_PENDING = "ToolCallPending"
    TOOL_EXECUTING = "ToolExecuting"
    TOOL_RESULT_APPENDED = "ToolResultAppended"
    DONE = "Done"


class ToolBackend(Protocol):
    """The tool invocation boundary: in-process ToolInvoker or a remote MCP client."""

    def catalog(self) -> list[dict[str, Any]]: ...

    async def invoke_request(self, request: ToolCallRequest) -> ToolInvocationResult: ...


@dataclass(slots=True)
class TurnOutput:
    assistant_text: str
    tool_results: list[ToolInvocationResult] = field(default_factory=list)


ReadInput = Callable[[], Awaitable["str | None"]]
Emit = Callable[[str], "Awaitable[None] | None"]


class ConversationSession:
    """AwaitingUserInput → ModelTurn → {Done | ToolCallPending}
    → (ToolExecuting → ToolResultAppended → ModelTurn)* → Done.

    History is append-only and owned by the session. A message is appended only
    once it is complete, so cancelling a model call or a tool invocation never
    leaves a partial entry behind.
    """

    def __init__(
        self,
        *,
        model: ModelCapability,
        tools: ToolBackend,
        max_rounds_per_turn: int = 5,
        exit_sentinel: str = "exit",
    ) -> None:
        self._model = model
        self._tools = tools
        self._max_rounds = max(1, int(max_rounds_per_turn))
        self._exit_sentinel = exit_sentinel.strip().lower()

        self._history: list[ConversationMessage] = []
        self._state = SessionState.AWAITING_USER_INPUT
        self._lock = asyncio.Lock()
        self._closed = False

        self.session_id = new_session_id()
        self._turn_id = 0
        self._log = get_logger("buildchat.orchestrator")

    @property
    def history(self) -> tuple[ConversationMessage, ...]:
        return tuple(self._history)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    def is_exit(self, text: str) -> bool:
        return text.strip().lower() == self._exit_sentinel

    async def run(self, read_input: ReadInput, emit: Emit) -> None:
        """Console-style loop until the exit sentinel, EOF (None) or cancellation."""

        try:
            while not self._closed:
                self._set_state(SessionState.AWAITING_USER_INPUT)
                text = await read_input()
                if text is None or self.is_exit(text):
                    self.close()
                    break
                if not text.strip():
                    continue

                try:
                    out = await self.run_turn(text)
                except TurnFailed as e:
                    await _maybe_await(emit(f"(error) {e.message}"))
                    continue
                await _maybe_await(emit(out.assistant_text or "(no response)"))
        except asyncio.CancelledError:
            self._log.info("session_cancelled", turns=self._turn_id, history=len(self._history))
            self.close()
            raise

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._log.info("session_closed", turns=self._turn_id, history=len(self._history))

    async def run_turn(self, user_text: str) -> TurnOutput:
        if self._closed:
            raise RuntimeError("session is closed")
        if self._lock.locked():
            raise RuntimeError("a turn is already in flight for this session")

        async with self._lock:
            self._turn_id += 1
            bind_context(trace_id=new_trace_id(), session_id=self.session_id, turn_id=self._turn_id)
            t0 = time.perf_counter()
            try:
                out = await self._turn(user_text)
            finally:
                self._set_state(SessionState.AWAITING_USER_INPUT)

            self._log.info(
                "turn_done",
                latency_ms=round((time.perf_counter() - t0) * 1000, 2),
                tool_results=len(out.tool_results),
                assistant_text_len=len(out.assistant_text),
            )
            return out

    async def _turn(self, user_text: str) -> TurnOutput:
        self._append(ConversationMessage.user(user_text))
        results: list[ToolInvocationResult] = []
        rounds = 0

        while True:
            # Past the round budget the model must answer without tools.
            catalog = self._tools.catalog() if rounds < self._max_rounds else None
            response = await self._model_turn(catalog)

            if catalog is None or not response.wants_tools:
                self._append(ConversationMessage.assistant(response.text))
                self._set_state(SessionState.DONE)
                return TurnOutput(assistant_text=response.text, tool_results=results)

            rounds += 1
            self._set_state(SessionState.TOOL_CALL_PENDING)
            results.extend(result for _, result in await self._execute_tool_calls(response, tool_round=rounds))

    async def _model_turn(self, catalog: list[dict[str, Any]] | None) -> ModelResponse:
        self._set_state(SessionState.MODEL_TURN)
        try:
            return await self._model.complete(history=self.history, tools=catalog)
        except asyncio.CancelledError:
            raise
        except Exception as e:  # noqa: BLE001
            self._log.exception("model_turn_failed")
            raise TurnFailed(f"model call failed: {type(e).__name__}: {e}", cause=type(e).__name__) from e

    async def _execute_tool_calls(
        self, response: ModelResponse, *, tool_round: int
    ) -> list[tuple[ToolCallRequest, ToolInvocationResult]]:
        done: list[tuple[ToolCallRequest, ToolInvocationResult]] = []

        # Sequential, in request order; each result is appended as soon as it exists.
        for request in response.tool_calls:
            self._set_state(SessionState.TOOL_EXECUTING)
            result = await self._tools.invoke_request(request)
            self._append(tool_message_from_result(request, result, tool_round=tool_round))
            self._set_state(SessionState.TOOL_RESULT_APPENDED)
            done.append((request, result))

        for bad in response.invalid_tool_calls:
            request = ToolCallRequest(id=bad.id, name=bad.name or "unknown", arguments={})
            result = Failure(
                FailureKind.VALIDATION_ERROR,
                f"arguments for {request.name} are not a valid JSON object: {bad.error}",
            )
            self._append(tool_message_from_result(request, result, tool_round=tool_round))
            self._set_state(SessionState.TOOL_RESULT_APPENDED)
            done.append((request, result))

        return done

    def _append(self, message: ConversationMessage) -> None:
        self._history.append(message)

    def _set_state(self, state: SessionState) -> None:
        self._state = state
        set_state(state.value)


async def _maybe_await(value: Any) -> None:
    if inspect.isawaitable(value):
        await value
