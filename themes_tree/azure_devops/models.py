"""Pydantic models for Azure DevOps work item data.

These models map the parts of the Work Item Tracking REST API responses the
tree needs.
API Reference: https://learn.microsoft.com/rest/api/azure/devops/wit
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

HIERARCHY_FORWARD = "System.LinkTypes.Hierarchy-Forward"


def identity_alias(identity: Any) -> str | None:
    """Alias of an identity reference: its unique name up to the ``@``."""
    if not identity:
        return None
    if isinstance(identity, dict):
        unique_name = identity.get("uniqueName") or identity.get("displayName")
    else:
        unique_name = str(identity)
    if not unique_name:
        return None
    return unique_name.split("@", 1)[0]


class WorkItemRelation(BaseModel):
    """A link returned by a tree query (``workItemRelations``)."""

    rel: str | None = Field(None, description="Link type reference name")
    source_id: int | None = Field(None, description="Source work item id")
    target_id: int | None = Field(None, description="Target work item id")

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "WorkItemRelation":
        source = payload.get("source") or {}
        target = payload.get("target") or {}
        return cls(
            rel=payload.get("rel"),
            source_id=source.get("id"),
            target_id=target.get("id"),
        )

    @property
    def is_hierarchy(self) -> bool:
        return (
            self.rel == HIERARCHY_FORWARD
            and self.source_id is not None
            and self.target_id is not None
        )


class AzureWorkItem(BaseModel):
    """A work item with the fields used by the tree."""

    id: int = Field(..., description="Work item id")
    type: str = Field("", description="System.WorkItemType")
    title: str = Field("", description="System.Title")
    state: str | None = Field(None, description="System.State")
    priority: int | None = Field(None, description="Microsoft.VSTS.Common.Priority")
    cost: str | None = Field(None, description="T-shirt cost (S, M, L, XL)")
    release: str | None = Field(None, description="Release, e.g. Dev16 or NET6")
    target: str | None = Field(None, description="Target, e.g. Preview 2")
    milestone: str | None = Field(None, description="Milestone, e.g. 16.8")
    created_at: datetime | None = None
    created_by: str | None = None
    assigned_to: str | None = None
    url: str | None = Field(None, description="Web URL of the work item")
    tags: list[str] = Field(default_factory=list)

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "AzureWorkItem":
        """Build a work item from a ``workitems`` API response entry."""
        fields = payload.get("fields") or {}
        links = payload.get("_links") or {}

        priority = fields.get("Microsoft.VSTS.Common.Priority")
        tags_text = fields.get("System.Tags") or ""

        return cls(
            id=payload["id"],
            type=fields.get("System.WorkItemType") or "",
            title=fields.get("System.Title") or "",
            state=fields.get("System.State"),
            priority=int(priority) if priority is not None else None,
            cost=fields.get("Microsoft.DevDiv.TshirtCosting"),
            release=fields.get("Microsoft.eTools.Bug.Release"),
            target=fields.get("Microsoft.DevDiv.Target"),
            milestone=fields.get("Microsoft.DevDiv.Milestone"),
            created_at=fields.get("System.CreatedDate"),
            created_by=identity_alias(fields.get("System.CreatedBy")),
            assigned_to=identity_alias(fields.get("System.AssignedTo")),
            url=(links.get("html") or {}).get("href"),
            tags=[tag.strip() for tag in tags_text.split(";") if tag.strip()],
        )
