from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

from ..registry import ToolDescriptor


def utc_now_tool(now: Callable[[], datetime] | None = None) -> ToolDescriptor:
    clock = now or (lambda: datetime.now(timezone.utc))

    def get_utc_now() -> dict[str, str]:
        return {"utc_now": clock().isoformat()}

    return ToolDescriptor(
        name="get_utc_now",
        description="Returns the current UTC time.",
        handler=get_utc_now,
    )
