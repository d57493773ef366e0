"""Azure DevOps integration: REST client and the test-results lookup."""

from __future__ import annotations

from .client import AzureDevOpsClient, AzureDevOpsError, BuildSystemClient
from .models import AzureDevOpsSettings, QueryOutcome, TestCaseResult
from .query import resolve

__all__ = [
    "AzureDevOpsClient",
    "AzureDevOpsError",
    "AzureDevOpsSettings",
    "BuildSystemClient",
    "QueryOutcome",
    "TestCaseResult",
    "resolve",
]
