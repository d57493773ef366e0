"""Azure DevOps REST client (builds + test management).

Only the handful of read endpoints the test-results lookup needs. Every
failure is raised as AzureDevOpsError with a small, stable category so the
query layer can tag it without knowing about httpx.
"""

from __future__ import annotations

from typing import Any, Protocol
from urllib.parse import quote

import httpx

from core.errors import BuildChatError
from observability.logging import get_logger

from .models import (
    QUALIFYING_RESULTS,
    AzureDevOpsSettings,
    Build,
    PipelineDefinition,
    RemoteTestResult,
    TestRun,
)


# Upper bound on result pages fetched for one test run.
_MAX_RESULT_PAGES = 10_000


class AzureDevOpsError(BuildChatError):
    """Normalized build-system failure.

    category is one of: unauthorized, not_found, http_error, network_error,
    malformed_response.
    """

    def __init__(self, category: str, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.category = category
        self.message = message
        self.status_code = status_code


class BuildSystemClient(Protocol):
    """What the test-results lookup needs from a build system."""

    async def list_definitions(self, project: str, name: str) -> list[PipelineDefinition]: ...

    async def list_builds(
        self,
        project: str,
        definition_id: int,
        *,
        results: tuple[str, ...] = QUALIFYING_RESULTS,
        status: str = "completed",
        top: int = 1,
    ) -> list[Build]: ...

    async def list_test_runs(self, project: str, build_uri: str) -> list[TestRun]: ...

    async def list_test_results(self, project: str, run_id: int) -> list[RemoteTestResult]: ...

    async def aclose(self) -> None: ...


class AzureDevOpsClient:
    """httpx-based implementation of BuildSystemClient.

    Authenticates with basic auth: empty user name + personal access token.
    """

    def __init__(self, settings: AzureDevOpsSettings, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        if not settings.collection_url or settings.access_token is None:
            raise ValueError("collection_url and access_token are required")

        self._settings = settings
        self._log = get_logger("buildchat.azure_devops")
        self._http = httpx.AsyncClient(
            base_url=settings.collection_url.rstrip("/") + "/",
            auth=("", settings.access_token.get_secret_value()),
            timeout=settings.timeout_s,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    async def __aenter__(self) -> "AzureDevOpsClient":
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def list_definitions(self, project: str, name: str) -> list[PipelineDefinition]:
        body = await self._get(f"{_seg(project)}/_apis/build/definitions", params={"name": name})
        return [PipelineDefinition(id=int(d["id"]), name=str(d.get("name", ""))) for d in _values(body)]

    async def list_builds(
        self,
        project: str,
        definition_id: int,
        *,
        results: tuple[str, ...] = QUALIFYING_RESULTS,
        status: str = "completed",
        top: int = 1,
    ) -> list[Build]:
        # The service orders builds most recent first by default.
        body = await self._get(
            f"{_seg(project)}/_apis/build/builds",
            params={
                "definitions": str(definition_id),
                "resultFilter": ",".join(results),
                "statusFilter": status,
                "$top": str(top),
            },
        )
        return [
            Build(
                id=int(b["id"]),
                build_number=str(b.get("buildNumber", "")),
                uri=str(b["uri"]),
                result=b.get("result"),
                finish_time=b.get("finishTime"),
            )
            for b in _values(body)
        ]

    async def list_test_runs(self, project: str, build_uri: str) -> list[TestRun]:
        body = await self._get(f"{_seg(project)}/_apis/test/runs", params={"buildUri": build_uri})
        return [TestRun(id=int(r["id"]), name=str(r.get("name", ""))) for r in _values(body)]

    async def list_test_results(self, project: str, run_id: int) -> list[RemoteTestResult]:
        page_size = max(1, int(self._settings.page_size))
        out: list[RemoteTestResult] = []
        skip = 0
        previous: list[Any] | None = None
        for _ in range(_MAX_RESULT_PAGES):
            body = await self._get(
                f"{_seg(project)}/_apis/test/Runs/{run_id}/results",
                params={"$top": str(page_size), "$skip": str(skip)},
            )
            page = _values(body)
            if page == previous:
                raise AzureDevOpsError(
                    "malformed_response",
                    f"test run {run_id} returned the same page again at $skip={skip}; paging is not advancing",
                )
            previous = page
            out.extend(_test_result(r) for r in page)
            if len(page) < page_size:
                return out
            skip += page_size
        raise AzureDevOpsError(
            "malformed_response",
            f"test run {run_id} returned more than {_MAX_RESULT_PAGES} full pages of results",
        )

    async def _get(self, path: str, *, params: dict[str, str]) -> Any:
        query = dict(params)
        query["api-version"] = self._settings.api_version
        try:
            resp = await self._http.get(path, params=query)
        except httpx.TimeoutException as e:
            raise AzureDevOpsError("network_error", f"request timed out: {path}") from e
        except httpx.HTTPError as e:
            raise AzureDevOpsError("network_error", f"{type(e).__name__}: {e}") from e

        self._log.debug("azure_devops_get", path=path, status=resp.status_code)

        # A rejected PAT is answered with 203 + an HTML sign-in page.
        if resp.status_code in (401, 403) or resp.status_code == 203:
            raise AzureDevOpsError(
                "unauthorized", f"access denied ({resp.status_code}) for {path}", status_code=resp.status_code
            )
        if resp.status_code == 404:
            raise AzureDevOpsError("not_found", f"resource not found: {path}", status_code=404)
        if resp.status_code >= 400:
            raise AzureDevOpsError(
                "http_error", f"HTTP {resp.status_code} for {path}: {_reason(resp)}", status_code=resp.status_code
            )

        try:
            return resp.json()
        except ValueError as e:
            raise AzureDevOpsError("malformed_response", f"response for {path} is not JSON") from e


def _seg(value: str) -> str:
    return quote(value, safe="")


def _values(body: Any) -> list[dict[str, Any]]:
    if not isinstance(body, dict) or not isinstance(body.get("value"), list):
        raise AzureDevOpsError("malformed_response", "expected an object with a 'value' list")
    return [v for v in body["value"] if isinstance(v, dict)]


def _test_result(raw: dict[str, Any]) -> RemoteTestResult:
    try:
        duration = float(raw.get("durationInMs") or 0.0)
    except (TypeError, ValueError):
        duration = 0.0
    return RemoteTestResult(
        test_case_title=raw.get("testCaseTitle"),
        outcome=str(raw.get("outcome") or ""),
        duration_ms=max(0.0, duration),
        error_message=raw.get("errorMessage"),
        stack_trace=raw.get("stackTrace"),
    )


def _reason(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.reason_phrase
    if isinstance(body, dict) and isinstance(body.get("message"), str):
        return body["message"]
    return resp.reason_phrase
