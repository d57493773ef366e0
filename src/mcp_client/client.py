from __future__ import annotations

import asyncio
import os
from contextlib import AsyncExitStack
from typing import Any

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client

from core.types import Failure, FailureKind, ToolCallRequest, ToolInvocationResult
from observability import set_call_id
from observability.logging import get_logger
from tools.openai_tools import spec_from_schema
from tools.tool_result_codec import decode_result

from .errors import McpClientError, McpNotConnectedError
from .types import StdioServerConfig


def _text_of(result: Any) -> str:
    texts: list[str] = []
    for block in getattr(result, "content", None) or []:
        text = getattr(block, "text", None)
        if isinstance(text, str) and text:
            texts.append(text)
    return "\n".join(texts)


class StdioToolClient:
    """Tool backend that talks to a tool server spawned as a child process.

    Unlike the in-process ToolInvoker, the session is long-lived: connect()
    launches the server, initializes the MCP session and caches the catalog.
    Every call still returns a ToolInvocationResult; transport failures become
    Failure(internal_error).
    """

    def __init__(self, cfg: StdioServerConfig) -> None:
        self._cfg = cfg
        self._stack: AsyncExitStack | None = None
        self._session: ClientSession | None = None
        self._catalog: list[dict[str, Any]] = []
        self._log = get_logger("buildchat.mcp_client")

    async def __aenter__(self) -> "StdioToolClient":
        await self.connect()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    async def connect(self) -> None:
        if self._session is not None:
            return

        # The child needs the caller's environment (Azure DevOps credentials).
        params = StdioServerParameters(
            command=self._cfg.command,
            args=list(self._cfg.args),
            env={**os.environ, **(self._cfg.env or {})},
        )

        stack = AsyncExitStack()
        try:
            read, write = await stack.enter_async_context(stdio_client(params))
            session = await stack.enter_async_context(ClientSession(read, write))
            await session.initialize()
            listing = await session.list_tools()
        except Exception as e:  # noqa: BLE001
            await stack.aclose()
            raise McpClientError("connect_failed", f"{type(e).__name__}: {e}", details={"command": self._cfg.command}) from e

        self._stack = stack
        self._session = session
        self._catalog = [
            spec_from_schema(name=t.name, description=t.description, input_schema=t.inputSchema)
            for t in listing.tools
        ]
        self._log.info("mcp_connected", command=self._cfg.command, tools=len(self._catalog))

    async def aclose(self) -> None:
        stack, self._stack, self._session = self._stack, None, None
        if stack is not None:
            await stack.aclose()

    def catalog(self) -> list[dict[str, Any]]:
        return list(self._catalog)

    async def invoke_request(self, request: ToolCallRequest) -> ToolInvocationResult:
        if self._session is None:
            raise McpNotConnectedError()

        set_call_id(request.id)
        try:
            result = await asyncio.wait_for(
                self._session.call_tool(request.name, arguments=dict(request.arguments)),
                timeout=self._cfg.timeout_s,
            )
        except TimeoutError:
            self._log.warning("mcp_call_timeout", tool=request.name, timeout_s=self._cfg.timeout_s)
            return Failure(FailureKind.CANCELLED, f"{request.name} timed out after {self._cfg.timeout_s}s")
        except Exception as e:  # noqa: BLE001
            self._log.exception("mcp_call_error", tool=request.name)
            return Failure(FailureKind.INTERNAL_ERROR, f"{type(e).__name__}: {e}")
        finally:
            set_call_id(None)

        text = _text_of(result)
        if getattr(result, "isError", False) and not text.startswith("{"):
            return Failure(FailureKind.INTERNAL_ERROR, text or "tool server reported an error")
        return decode_result(text)
