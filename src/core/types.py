from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union


class FailureKind(str, Enum):
    NOT_FOUND = "not_found"
    VALIDATION_ERROR = "validation_error"
    CONFIGURATION_ERROR = "configuration_error"
    INTERNAL_ERROR = "internal_error"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class ToolCallRequest:
    """Abstract tool call (stable structure across model and transport implementations)."""

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class InvalidToolCall:
    """A tool call the model emitted but whose arguments could not be parsed."""

    id: str
    name: str | None
    raw_arguments: str
    error: str


@dataclass(frozen=True, slots=True)
class Success:
    payload: dict[str, Any]

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class Failure:
    kind: FailureKind
    message: str

    @property
    def ok(self) -> bool:
        return False


ToolInvocationResult = Union[Success, Failure]


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True, slots=True)
class ConversationMessage:
    """One entry of the append-only conversation history.

    Tool messages keep the originating request (name + arguments) next to the
    correlation id so the wire format can rebuild the assistant tool-call turn.
    tool_round numbers the model rounds within a turn; calls from one round
    belong to a single assistant request.
    """

    role: Role
    content: str | dict[str, Any]
    call_id: str | None = None
    tool_name: str | None = None
    arguments: dict[str, Any] | None = None
    tool_round: int | None = None

    @classmethod
    def user(cls, text: str) -> "ConversationMessage":
        return cls(role=Role.USER, content=text)

    @classmethod
    def assistant(cls, text: str) -> "ConversationMessage":
        return cls(role=Role.ASSISTANT, content=text)


@dataclass(frozen=True, slots=True)
class ModelResponse:
    """What the model capability produced for one ModelTurn."""

    text: str = ""
    tool_calls: list[ToolCallRequest] = field(default_factory=list)
    invalid_tool_calls: list[InvalidToolCall] = field(default_factory=list)

    @property
    def wants_tools(self) -> bool:
        return bool(self.tool_calls or self.invalid_tool_calls)
