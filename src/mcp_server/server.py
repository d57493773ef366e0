from __future__ import annotations

from typing import Any

import mcp.types as types
from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server

from core import __version__
from core.types import ToolCallRequest
from observability.ids import new_call_id
from observability.logging import get_logger
from tools.invoker import ToolInvoker
from tools.registry import ToolRegistry
from tools.tool_result_codec import encode_result

SERVER_NAME = "buildchat"


def build_server(registry: ToolRegistry, invoker: ToolInvoker) -> Server:
    """Wire list_tools/call_tool to the registry and the invoker.

    Argument validation is left to the invoker so a missing parameter comes back
    as a validation_error payload (an elicitation prompt), not a protocol error.
    """

    log = get_logger("buildchat.mcp_server")
    server: Server = Server(SERVER_NAME, version=__version__)

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        return [
            types.Tool(name=d.name, description=d.description, inputSchema=d.input_schema())
            for d in registry.list()
        ]

    @server.call_tool(validate_input=False)
    async def call_tool(name: str, arguments: dict[str, Any] | None) -> list[types.TextContent]:
        request = ToolCallRequest(id=new_call_id(), name=name, arguments=dict(arguments or {}))
        result = await invoker.invoke_request(request)
        log.info("mcp_call_tool", tool=name, ok=result.ok)
        return [types.TextContent(type="text", text=encode_result(result, meta={"tool": name}))]

    return server


async def serve_stdio(registry: ToolRegistry, invoker: ToolInvoker) -> None:
    server = build_server(registry, invoker)
    log = get_logger("buildchat.mcp_server")
    log.info("mcp_server_start", tools=len(registry))
    async with stdio_server() as (read, write):
        await server.run(read, write, server.create_initialization_options())
    log.info("mcp_server_stop")
