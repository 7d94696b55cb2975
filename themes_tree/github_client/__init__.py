"""GitHub client package for API interaction."""

from .client import GitHubClient, is_release_project
from .links import IssueLink, IssueLinkType, parse_issue_links
from .models import ROOT_LABELS, GitHubIssueCard, GitHubItem, classify_kind

__all__ = [
    "GitHubClient",
    "GitHubIssueCard",
    "GitHubItem",
    "IssueLink",
    "IssueLinkType",
    "ROOT_LABELS",
    "classify_kind",
    "is_release_project",
    "parse_issue_links",
]
