from __future__ import annotations

from typing import Any

from azure_devops.models import AzureDevOpsSettings
from azure_devops.query import Connector, connect, resolve
from core.config import AzureDevOpsConfig

from ..registry import ToolDescriptor, ToolParam


def pipeline_results_tool(
    cfg: AzureDevOpsConfig | None = None,
    *,
    connector: Connector = connect,
    diagnostics: bool = False,
) -> ToolDescriptor:
    """Descriptor for get_test_case_results.

    Credentials are read from the environment on each call, so a missing
    AZURE_DEVOPS_PAT surfaces as a configuration_error result instead of a
    start-up failure.
    """

    ado_cfg = cfg or AzureDevOpsConfig()

    async def get_test_case_results(project_name: str, definition_name: str, test_case_title: str) -> dict[str, Any]:
        settings = AzureDevOpsSettings.from_env(ado_cfg)
        outcome = await resolve(
            settings,
            project_name,
            definition_name,
            test_case_title,
            connector=connector,
            diagnostics=diagnostics,
        )
        return outcome.to_dict()

    return ToolDescriptor(
        name="get_test_case_results",
        description=(
            "Retrieve test case results from the latest successful build of a pipeline/definition "
            "in Azure DevOps. Matches test case titles by case-insensitive substring."
        ),
        handler=get_test_case_results,
        params=(
            ToolParam("project_name", description="the Azure DevOps project name"),
            ToolParam("definition_name", description="the pipeline (build definition) name"),
            ToolParam("test_case_title", description="full or partial test case title"),
        ),
    )
