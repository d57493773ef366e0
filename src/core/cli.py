from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from azure_devops.models import AzureDevOpsSettings
from azure_devops.query import resolve
from llm.client import ChatClient, FakeChatClient
from mcp_client import StdioServerConfig, StdioToolClient
from observability.logging import configure_logging, get_logger
from orchestrator.session import ConversationSession, ToolBackend
from tools.builtin import register_builtin_tools
from tools.invoker import ToolInvoker
from tools.registry import ToolRegistry

from .config import AppConfig, default_config, load_config
from .errors import ConfigError

DEFAULT_CONFIG = "configs/app.yaml"


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="buildchat", description="Chat with a model that can query Azure DevOps test results")
    p.add_argument("--config", default=DEFAULT_CONFIG, help="YAML config path")
    p.add_argument("--log-level", default="WARNING", help="log level (logs go to stderr)")

    sub = p.add_subparsers(dest="command", required=True)

    chat = sub.add_parser("chat", help="interactive console chat")
    chat.add_argument("--fake", action="store_true", help="use the offline FakeChatClient instead of a model server")
    chat.add_argument(
        "--stdio-server",
        action="store_true",
        help="spawn `buildchat serve` and reach the tools over MCP instead of in-process",
    )

    sub.add_parser("serve", help="run the MCP tool server on stdio")

    query = sub.add_parser("query", help="run get_test_case_results once and print the outcome as JSON")
    query.add_argument("--project", required=True)
    query.add_argument("--definition", required=True)
    query.add_argument("--test-case", required=True)
    return p


def _load(path: str) -> AppConfig:
    # The default path is optional; an explicit one must exist.
    if path == DEFAULT_CONFIG and not Path(path).exists():
        return default_config()
    return load_config(path)


def build_invoker(cfg: AppConfig) -> tuple[ToolRegistry, ToolInvoker]:
    registry = register_builtin_tools(
        ToolRegistry(),
        azure_devops=cfg.azure_devops,
        diagnostics=cfg.tools.diagnostics,
    )
    return registry, ToolInvoker(registry, timeout_s=cfg.tools.timeout_s)


async def _read_line() -> str | None:
    try:
        return await asyncio.to_thread(input, "\nYou: ")
    except EOFError:
        return None


def _print_answer(text: str) -> None:
    print(f"\nAI: {text}", flush=True)


async def _chat(cfg: AppConfig, args: argparse.Namespace) -> int:
    model = FakeChatClient() if args.fake else ChatClient(cfg.llm)

    remote: StdioToolClient | None = None
    backend: ToolBackend
    if args.stdio_server:
        remote = StdioToolClient(
            StdioServerConfig(
                command=sys.executable,
                args=["-m", "core.cli", "--config", args.config, "--log-level", args.log_level, "serve"],
                timeout_s=cfg.tools.timeout_s,
            )
        )
        await remote.connect()
        backend = remote
    else:
        _, backend = build_invoker(cfg)

    try:
        names = [spec["function"]["name"] for spec in backend.catalog()]
        print("Available tools:")
        for name in names:
            print(f"- {name}")
        print(f"Ask a question (type '{cfg.session.exit_sentinel}' to quit):", flush=True)

        session = ConversationSession(
            model=model,
            tools=backend,
            max_rounds_per_turn=cfg.tools.max_rounds_per_turn,
            exit_sentinel=cfg.session.exit_sentinel,
        )
        await session.run(_read_line, _print_answer)
    finally:
        if remote is not None:
            await remote.aclose()
    return 0


async def _serve(cfg: AppConfig) -> int:
    from mcp_server import serve_stdio

    registry, invoker = build_invoker(cfg)
    await serve_stdio(registry, invoker)
    return 0


async def _query(cfg: AppConfig, args: argparse.Namespace) -> int:
    settings = AzureDevOpsSettings.from_env(cfg.azure_devops)
    outcome = await resolve(
        settings,
        args.project,
        args.definition,
        args.test_case,
        diagnostics=cfg.tools.diagnostics,
    )
    print(json.dumps(outcome.to_dict(), ensure_ascii=False, indent=2))
    return 0 if outcome.success else 1


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    configure_logging(level=args.log_level)
    log = get_logger("buildchat.cli")

    try:
        cfg = _load(args.config)
    except ConfigError as e:
        print(f"config error: {e}", file=sys.stderr)
        return 2

    if args.command == "chat":
        runner = _chat(cfg, args)
    elif args.command == "serve":
        runner = _serve(cfg)
    else:
        runner = _query(cfg, args)

    try:
        return asyncio.run(runner)
    except KeyboardInterrupt:
        log.info("interrupted", command=args.command)
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
