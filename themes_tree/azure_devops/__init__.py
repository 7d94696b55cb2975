"""Azure DevOps client package for work item queries."""

from .client import BATCH_SIZE, AzureDevOpsClient, batched
from .models import HIERARCHY_FORWARD, AzureWorkItem, WorkItemRelation, identity_alias

__all__ = [
    "AzureDevOpsClient",
    "AzureWorkItem",
    "BATCH_SIZE",
    "HIERARCHY_FORWARD",
    "WorkItemRelation",
    "batched",
    "identity_alias",
]
