"""Tree model, conflict resolution and ordering."""

from .ids import AzureDevOpsId, GitHubIssueId, GitHubRepoId, parse_node_id
from .merge import display_sort_key, merge_trees, sort_tree
from .models import (
    Tree,
    TreeNode,
    TreeNodeCost,
    TreeNodeKind,
    TreeNodeLabel,
    TreeNodeStatus,
)
from .resolver import ResolutionReport, canonical_key, resolve_forest

__all__ = [
    "AzureDevOpsId",
    "GitHubIssueId",
    "GitHubRepoId",
    "parse_node_id",
    "display_sort_key",
    "merge_trees",
    "sort_tree",
    "Tree",
    "TreeNode",
    "TreeNodeCost",
    "TreeNodeKind",
    "TreeNodeLabel",
    "TreeNodeStatus",
    "ResolutionReport",
    "canonical_key",
    "resolve_forest",
]
