"""Pydantic models for GitHub data used to build the themes tree.

These models hold the subset of GitHub's REST API issue data the tree needs.
API Reference: https://docs.github.com/en/rest/issues
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from ..tree.ids import GitHubIssueId
from ..tree.models import TreeNodeKind, TreeNodeLabel, TreeNodeStatus

THEME_LABEL = "Theme"
EPIC_LABEL = "Epic"
USER_STORY_LABEL = "User Story"

# Labels that make an issue a root of the GitHub forest, broadest first.
ROOT_LABELS = [THEME_LABEL, EPIC_LABEL, USER_STORY_LABEL]

_KIND_BY_LABEL = [
    (THEME_LABEL, TreeNodeKind.THEME),
    (EPIC_LABEL, TreeNodeKind.EPIC),
    (USER_STORY_LABEL, TreeNodeKind.USER_STORY),
]


def classify_kind(label_names: list[str]) -> TreeNodeKind:
    """Kind of an issue from its labels: Theme, else Epic, else User Story, else Issue."""
    folded = {name.casefold() for name in label_names}
    for label, kind in _KIND_BY_LABEL:
        if label.casefold() in folded:
            return kind
    return TreeNodeKind.ISSUE


class GitHubItem(BaseModel):
    """An issue fetched from GitHub.

    ``id`` is derived from the issue's own URL, so for transferred issues it
    is the post-transfer identifier.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: GitHubIssueId = Field(..., description="Canonical issue identifier")
    is_private: bool = Field(False, description="Whether the repository is private")
    created_at: datetime | None = Field(None, description="Issue creation timestamp")
    created_by: str | None = Field(None, description="Login of the issue author")
    is_closed: bool = Field(False, description="Whether the issue has been closed")
    title: str = Field("", description="Issue title")
    body: str | None = Field(None, description="Issue body in markdown")
    milestone: str | None = Field(None, description="Milestone title")
    assignees: list[str] = Field(default_factory=list, description="Assignee logins")
    labels: list[TreeNodeLabel] = Field(default_factory=list)
    project_status: TreeNodeStatus | None = Field(
        None, description="Release project and column the issue is tracked in"
    )

    @property
    def kind(self) -> TreeNodeKind:
        return classify_kind([label.name for label in self.labels])

    @property
    def url(self) -> str:
        return self.id.url


class GitHubIssueCard(BaseModel):
    """A card on a release project board referencing an issue."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    issue_id: GitHubIssueId
    project_name: str
    column_name: str

    @property
    def status(self) -> TreeNodeStatus:
        return TreeNodeStatus(release=self.project_name, status=self.column_name)

    def __str__(self) -> str:
        return f"{self.issue_id} - {self.status}"
