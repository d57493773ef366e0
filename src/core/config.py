from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import find_dotenv, load_dotenv
from pydantic import SecretStr

from .errors import ConfigError

# re-export for contract/tests
__all__ = [
    "AppConfig",
    "AzureDevOpsConfig",
    "ConfigError",
    "LlmConfig",
    "SessionConfig",
    "default_config",
    "ToolsConfig",
    "load_config",
]


_ENV_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")

# Local Ollama accepts any bearer token on its OpenAI-compatible endpoint.
_OLLAMA_PLACEHOLDER_KEY = "ollama"


def _expand_env_in_str(value: str, *, path: str) -> str:
    def repl(match: re.Match[str]) -> str:
        key = match.group(1)
        if key not in os.environ or os.environ[key] == "":
            raise ConfigError(f"environment variable {key!r} is not set", path=path)
        return os.environ[key]

    return _ENV_PATTERN.sub(repl, value)


def _expand_env(obj: Any, *, path: str) -> Any:
    if isinstance(obj, str):
        return _expand_env_in_str(obj, path=path)
    if isinstance(obj, list):
        return [_expand_env(v, path=path) for v in obj]
    if isinstance(obj, dict):
        return {k: _expand_env(v, path=f"{path}.{k}" if path else str(k)) for k, v in obj.items()}
    return obj


def _load_dotenv() -> None:
    # Local dev: allow injecting secrets from .env in the working directory (do not commit it).
    load_dotenv(find_dotenv(usecwd=True), override=False)


_TRUE_STRINGS = frozenset({"true", "yes", "1"})
_FALSE_STRINGS = frozenset({"false", "no", "0"})


def _as_bool(value: Any, *, path: str) -> bool:
    # ${ENV} expansion yields strings, so "false" must not be truthy.
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise ConfigError(f"must be a boolean, got {value!r}", path=path)


def _section(raw: dict[str, Any], key: str) -> dict[str, Any]:
    value = raw.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError("must be a mapping", path=key)
    return value


@dataclass(frozen=True)
class LlmConfig:
    api_key: SecretStr
    base_url: str = "http://localhost:11434/v1"
    model: str = "llama3.2:3b"
    timeout_s: float = 60.0
    max_retries: int = 2
    temperature: float = 0.2
    system_prompt: str = (
        "You are a helpful assistant with access to tools. "
        "Call a tool when it can answer the question. "
        "If a tool reports missing information, ask the user for it."
    )


@dataclass(frozen=True)
class ToolsConfig:
    timeout_s: float = 120.0
    max_rounds_per_turn: int = 5
    # When enabled, internal failures keep their stack trace in tool traces.
    diagnostics: bool = False


@dataclass(frozen=True)
class AzureDevOpsConfig:
    """Non-secret Azure DevOps options.

    Credentials are read from the environment on every tool invocation, see
    azure_devops.models.AzureDevOpsSettings.
    """

    api_version: str = "7.1"
    timeout_s: float = 30.0
    page_size: int = 1000


@dataclass(frozen=True)
class SessionConfig:
    exit_sentinel: str = "exit"


@dataclass(frozen=True)
class AppConfig:
    llm: LlmConfig
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    azure_devops: AzureDevOpsConfig = field(default_factory=AzureDevOpsConfig)
    session: SessionConfig = field(default_factory=SessionConfig)


def default_config() -> AppConfig:
    """Config used when no YAML file is given (local Ollama, default tool limits)."""

    _load_dotenv()
    api_key = os.getenv("LLM_API_KEY") or _OLLAMA_PLACEHOLDER_KEY
    return AppConfig(llm=LlmConfig(api_key=SecretStr(api_key)))


def load_config(path: str | Path) -> AppConfig:
    """Load YAML config and expand ${ENV_VAR}."""

    _load_dotenv()

    config_path = Path(path)
    if not config_path.exists():
        raise ConfigError("config file does not exist", path=str(config_path))

    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except Exception as e:  # noqa: BLE001
        raise ConfigError(f"YAML parse error: {e}", path=str(config_path)) from e

    if not isinstance(raw, dict):
        raise ConfigError("top level must be a YAML mapping", path=str(config_path))

    expanded = _expand_env(raw, path="")

    llm_raw = _section(expanded, "llm")
    api_key = llm_raw.get("api_key")
    if api_key is None or api_key == "":
        api_key = os.getenv("LLM_API_KEY") or _OLLAMA_PLACEHOLDER_KEY
    if not isinstance(api_key, str) or not api_key.strip():
        raise ConfigError("must be a non-empty string (or set LLM_API_KEY)", path="llm.api_key")

    try:
        llm = LlmConfig(
            api_key=SecretStr(api_key),
            base_url=str(llm_raw.get("base_url", LlmConfig.base_url)),
            model=str(llm_raw.get("model", LlmConfig.model)),
            timeout_s=float(llm_raw.get("timeout_s", LlmConfig.timeout_s)),
            max_retries=int(llm_raw.get("max_retries", LlmConfig.max_retries)),
            temperature=float(llm_raw.get("temperature", LlmConfig.temperature)),
            system_prompt=str(llm_raw.get("system_prompt", LlmConfig.system_prompt)),
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"invalid value: {e}", path="llm") from e

    tools_raw = _section(expanded, "tools")
    try:
        tools = ToolsConfig(
            timeout_s=float(tools_raw.get("timeout_s", ToolsConfig.timeout_s)),
            max_rounds_per_turn=int(tools_raw.get("max_rounds_per_turn", ToolsConfig.max_rounds_per_turn)),
            diagnostics=_as_bool(tools_raw.get("diagnostics", ToolsConfig.diagnostics), path="tools.diagnostics"),
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"invalid value: {e}", path="tools") from e

    if tools.timeout_s <= 0:
        raise ConfigError("must be > 0", path="tools.timeout_s")
    if tools.max_rounds_per_turn < 1:
        raise ConfigError("must be an integer >= 1", path="tools.max_rounds_per_turn")

    ado_raw = _section(expanded, "azure_devops")
    try:
        azure_devops = AzureDevOpsConfig(
            api_version=str(ado_raw.get("api_version", AzureDevOpsConfig.api_version)),
            timeout_s=float(ado_raw.get("timeout_s", AzureDevOpsConfig.timeout_s)),
            page_size=int(ado_raw.get("page_size", AzureDevOpsConfig.page_size)),
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"invalid value: {e}", path="azure_devops") from e

    if azure_devops.page_size < 1:
        raise ConfigError("must be an integer >= 1", path="azure_devops.page_size")

    session_raw = _section(expanded, "session")
    sentinel = session_raw.get("exit_sentinel", SessionConfig.exit_sentinel)
    if not isinstance(sentinel, str) or not sentinel.strip():
        raise ConfigError("must be a non-empty string", path="session.exit_sentinel")

    return AppConfig(
        llm=llm,
        tools=tools,
        azure_devops=azure_devops,
        session=SessionConfig(exit_sentinel=sentinel.strip()),
    )
