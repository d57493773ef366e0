from __future__ import annotations

import secrets


def new_trace_id() -> str:
    return secrets.token_hex(16)


def new_session_id() -> str:
    return secrets.token_hex(12)


def new_call_id() -> str:
    """Correlation id for tool calls the model emitted without one."""

    return f"call_{secrets.token_hex(8)}"
