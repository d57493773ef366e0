"""Conversation orchestration (turn loop state machine)."""

from __future__ import annotations

from .session import ConversationSession, SessionState, ToolBackend, TurnOutput

__all__ = [
    "ConversationSession",
    "SessionState",
    "ToolBackend",
    "TurnOutput",
]
