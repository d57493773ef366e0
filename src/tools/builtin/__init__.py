"""Built-in tools and the start-up routine that registers them."""

from __future__ import annotations

from azure_devops.query import Connector, connect
from core.config import AzureDevOpsConfig

from ..registry import ToolRegistry
from .clock import utc_now_tool
from .echo import ECHO, REVERSE_ECHO
from .pipeline_results import pipeline_results_tool


def register_builtin_tools(
    registry: ToolRegistry,
    *,
    azure_devops: AzureDevOpsConfig | None = None,
    connector: Connector = connect,
    diagnostics: bool = False,
) -> ToolRegistry:
    registry.register(ECHO)
    registry.register(REVERSE_ECHO)
    registry.register(utc_now_tool())
    registry.register(pipeline_results_tool(azure_devops, connector=connector, diagnostics=diagnostics))
    return registry


__all__ = ["register_builtin_tools"]
