"""Test-case results lookup: definition -> latest good build -> test runs -> filtered results.

Every path returns a QueryOutcome carrying the trace collected so far; nothing
raises past resolve() except caller cancellation.
"""

from __future__ import annotations

import asyncio
import traceback
from typing import Callable

from core.types import FailureKind
from observability.logging import get_logger

from .client import AzureDevOpsClient, AzureDevOpsError, BuildSystemClient
from .models import (
    QUALIFYING_RESULTS,
    AzureDevOpsSettings,
    QueryOutcome,
    TestCaseResult,
)

Connector = Callable[[AzureDevOpsSettings], BuildSystemClient]

_log = get_logger("buildchat.azure_devops.query")


def connect(settings: AzureDevOpsSettings) -> BuildSystemClient:
    return AzureDevOpsClient(settings)


class _Trace:
    def __init__(self) -> None:
        self.lines: list[str] = []

    def add(self, line: str) -> None:
        self.lines.append(line)

    def fail(self, kind: FailureKind, error: str, *, missing: str | None = None) -> QueryOutcome:
        _log.info("test_results_failed", error_kind=kind.value, missing=missing, steps=len(self.lines))
        return QueryOutcome(
            success=False,
            log=tuple(self.lines),
            error=error,
            error_kind=kind,
            missing=missing,
        )


async def resolve(
    settings: AzureDevOpsSettings,
    project_name: str,
    definition_name: str,
    test_case_title: str,
    *,
    connector: Connector = connect,
    diagnostics: bool = False,
) -> QueryOutcome:
    """Find results whose title contains ``test_case_title`` in the latest good build."""

    trace = _Trace()
    trace.add(
        f"Starting test case lookup for project: {project_name}, "
        f"definition: {definition_name}, test case: {test_case_title}"
    )

    if not (project_name or "").strip():
        return trace.fail(FailureKind.VALIDATION_ERROR, "Project name is required. Ask the user which project to use.")
    if not (definition_name or "").strip():
        return trace.fail(
            FailureKind.VALIDATION_ERROR,
            "Definition (pipeline) name is required. Ask the user which pipeline to look at.",
        )
    if not (test_case_title or "").strip():
        return trace.fail(
            FailureKind.VALIDATION_ERROR,
            "Test case title is required. Ask the user which test case to look for.",
        )

    missing_settings = settings.missing()
    if missing_settings:
        return trace.fail(
            FailureKind.CONFIGURATION_ERROR,
            f"{' and '.join(missing_settings)} must be set",
        )

    trace.add(f"Using Azure DevOps collection URL: {settings.collection_url}")

    try:
        trace.add("Connecting to Azure DevOps...")
        client = connector(settings)
        try:
            trace.add("Successfully connected to Azure DevOps")
            return await _resolve_with(client, trace, project_name, definition_name, test_case_title)
        finally:
            await client.aclose()
    except asyncio.CancelledError:
        raise
    except Exception as e:  # noqa: BLE001
        category = e.category if isinstance(e, AzureDevOpsError) else type(e).__name__
        message = e.message if isinstance(e, AzureDevOpsError) else str(e)
        trace.add(f"ERROR: {category}: {message}")
        if diagnostics:
            trace.add(f"Stack trace: {traceback.format_exc()}")
        _log.warning("test_results_error", category=category)
        return trace.fail(FailureKind.INTERNAL_ERROR, f"{category}: {message}")


async def _resolve_with(
    client: BuildSystemClient,
    trace: _Trace,
    project_name: str,
    definition_name: str,
    test_case_title: str,
) -> QueryOutcome:
    trace.add(f"Looking for build definition: {definition_name}")
    definitions = await client.list_definitions(project_name, definition_name)
    if not definitions:
        return trace.fail(
            FailureKind.NOT_FOUND,
            f"Build definition '{definition_name}' not found in project '{project_name}'.",
            missing="definition",
        )
    # TODO: disambiguate same-named definitions (folder path) instead of taking the first.
    definition = definitions[0]
    if len(definitions) > 1:
        trace.add(f"{len(definitions)} definitions share this name; using the first")
    trace.add(f"Found build definition with ID: {definition.id}")

    trace.add("Getting latest successful or partially successful build...")
    builds = await client.list_builds(
        project_name, definition.id, results=QUALIFYING_RESULTS, status="completed", top=1
    )
    if not builds:
        trace.add("No builds found.")
        return trace.fail(
            FailureKind.NOT_FOUND,
            f"No completed successful or partially successful build found for definition '{definition_name}'.",
            missing="build",
        )
    build = builds[0]
    trace.add(f"Found build ID: {build.id}, Build Number: {build.build_number}")

    trace.add("Getting test runs for build...")
    runs = await client.list_test_runs(project_name, build.uri)
    trace.add(f"Found {len(runs)} test runs")

    needle = test_case_title.strip().casefold()
    matches: list[TestCaseResult] = []
    for run in runs:
        for r in await client.list_test_results(project_name, run.id):
            title = r.test_case_title
            if not title or not title.strip() or needle not in title.casefold():
                continue
            trace.add(f"Found matching test case: {title}, Outcome: {r.outcome}")
            matches.append(
                TestCaseResult(
                    title=title,
                    outcome=r.outcome,
                    duration_ms=max(0.0, float(r.duration_ms)),
                    error_message=r.error_message,
                    stack_trace=r.stack_trace,
                )
            )

    if not matches:
        trace.add(f"No test case results matching '{test_case_title}' were found")
        return trace.fail(
            FailureKind.NOT_FOUND,
            f"No test case results matching '{test_case_title}' were found.",
            missing="test-case",
        )

    trace.add(f"Successfully found {len(matches)} matching test case results")
    _log.info("test_results_found", results=len(matches), build_id=build.id)
    return QueryOutcome(success=True, log=tuple(trace.lines), results=tuple(matches))
