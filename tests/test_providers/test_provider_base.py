"""Tests for shared provider helpers."""

from collections.abc import Callable

import pytest

from themes_tree.providers.base import (
    build_forest,
    colon_values,
    is_bottom_up,
    parse_cost,
    parse_priority,
    parse_teams,
    split_colon_value,
)
from themes_tree.tree.ids import GitHubIssueId
from themes_tree.tree.models import TreeNode, TreeNodeCost


@pytest.mark.parametrize(
    "text, expected",
    [
        ("Priority:1", ("Priority", "1")),
        (" Team : Runtime ", ("Team", "Runtime")),
        ("NoColon", None),
        ("a:b:c", None),
    ],
)
def test_split_colon_value(text: str, expected: tuple[str, str] | None) -> None:
    """Test exactly one colon is required."""
    assert split_colon_value(text) == expected


def test_colon_values_match_key_case_insensitively() -> None:
    """Test key matching ignores case."""
    assert colon_values(["team:A", "TEAM:B", "Other:C"], "Team") == ["A", "B"]


def test_parse_priority_takes_most_urgent() -> None:
    """Test the lowest number wins and malformed values are ignored."""
    assert parse_priority(["Priority:2", "Priority:0", "Priority:high"]) == 0
    assert parse_priority(["bug"]) is None


def test_parse_cost_takes_largest() -> None:
    """Test the largest t-shirt size wins."""
    assert parse_cost(["Cost:S", "Cost:XL", "Cost:M"]) == TreeNodeCost.EXTRA_LARGE
    assert parse_cost(["Cost:huge"]) is None


def test_parse_teams_distinct_sorted() -> None:
    """Test teams are deduplicated and sorted."""
    assert parse_teams(["Team:Zeta", "Team:Alpha", "Team:Zeta", "Team:"]) == [
        "Alpha",
        "Zeta",
    ]


def test_is_bottom_up() -> None:
    """Test bottom-up labels are recognized case-insensitively."""
    assert is_bottom_up(["bug", "continuous improvement"])
    assert not is_bottom_up(["bug"])


def test_build_forest_attaches_children(node_factory: Callable[..., TreeNode]) -> None:
    """Test nodes get their resolved children and roots are returned."""
    ids = [GitHubIssueId("o", "r", n) for n in (1, 2, 3)]
    nodes = {issue_id: node_factory(str(issue_id)) for issue_id in ids}
    children = {ids[0]: [ids[1]], ids[1]: [ids[2]], ids[2]: [ids[0]]}

    roots = build_forest(nodes, children)

    assert [root.id for root in roots] == ["o/r#1"]
    assert [n.id for n in roots[0].descendants_and_self()] == ["o/r#1", "o/r#2", "o/r#3"]
    assert nodes[ids[2]].children == []
