from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Mapping

from pydantic import SecretStr

from core.config import AzureDevOpsConfig
from core.types import FailureKind

COLLECTION_URL_ENV = "AZURE_DEVOPS_COLLECTION_URL"
ACCESS_TOKEN_ENV = "AZURE_DEVOPS_PAT"

# Build results that qualify as "latest good build".
QUALIFYING_RESULTS = ("succeeded", "partiallySucceeded")


@dataclass(frozen=True, slots=True)
class AzureDevOpsSettings:
    """Connection settings resolved once per tool invocation."""

    collection_url: str | None
    access_token: SecretStr | None
    api_version: str = AzureDevOpsConfig.api_version
    timeout_s: float = AzureDevOpsConfig.timeout_s
    page_size: int = AzureDevOpsConfig.page_size

    @classmethod
    def from_env(
        cls, cfg: AzureDevOpsConfig | None = None, *, environ: Mapping[str, str] | None = None
    ) -> "AzureDevOpsSettings":
        cfg = cfg or AzureDevOpsConfig()
        env = os.environ if environ is None else environ
        url = (env.get(COLLECTION_URL_ENV) or "").strip()
        token = (env.get(ACCESS_TOKEN_ENV) or "").strip()
        return cls(
            collection_url=url or None,
            access_token=SecretStr(token) if token else None,
            api_version=cfg.api_version,
            timeout_s=cfg.timeout_s,
            page_size=cfg.page_size,
        )

    def missing(self) -> list[str]:
        out: list[str] = []
        if not self.collection_url:
            out.append(COLLECTION_URL_ENV)
        if self.access_token is None or not self.access_token.get_secret_value():
            out.append(ACCESS_TOKEN_ENV)
        return out


@dataclass(frozen=True, slots=True)
class PipelineDefinition:
    id: int
    name: str


@dataclass(frozen=True, slots=True)
class Build:
    id: int
    build_number: str
    uri: str
    result: str | None = None
    finish_time: str | None = None


@dataclass(frozen=True, slots=True)
class TestRun:
    __test__ = False

    id: int
    name: str = ""


@dataclass(frozen=True, slots=True)
class RemoteTestResult:
    """One test result row as reported by the build system."""

    __test__ = False

    test_case_title: str | None
    outcome: str
    duration_ms: float = 0.0
    error_message: str | None = None
    stack_trace: str | None = None


@dataclass(frozen=True, slots=True)
class TestCaseResult:
    __test__ = False

    title: str
    outcome: str
    duration_ms: float
    error_message: str | None = None
    stack_trace: str | None = None

    def __post_init__(self) -> None:
        if self.duration_ms < 0:
            raise ValueError("duration_ms must be >= 0")


@dataclass(frozen=True, slots=True)
class QueryOutcome:
    """Result of a test-case lookup.

    ``log`` is the ordered trace of steps taken; ``results`` is empty exactly
    when ``success`` is False.
    """

    success: bool
    log: tuple[str, ...]
    results: tuple[TestCaseResult, ...] = field(default_factory=tuple)
    error: str | None = None
    error_kind: FailureKind | None = None
    # definition | build | test-case, for not_found failures
    missing: str | None = None

    def __post_init__(self) -> None:
        if self.success and not self.results:
            raise ValueError("a successful outcome must carry at least one result")
        if not self.success and self.results:
            raise ValueError("a failed outcome must not carry results")

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "log": list(self.log),
            "results": [
                {
                    "title": r.title,
                    "outcome": r.outcome,
                    "duration_ms": r.duration_ms,
                    "error_message": r.error_message,
                    "stack_trace": r.stack_trace,
                }
                for r in self.results
            ],
            "error": self.error,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "missing": self.missing,
        }
