"""Test configuration and fixtures."""

from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest

from themes_tree.tree.models import Tree, TreeNode, TreeNodeKind, TreeNodeLabel


def make_node(node_id: str, **kwargs: Any) -> TreeNode:
    """Create a tree node with sensible defaults."""
    defaults: dict[str, Any] = {
        "title": node_id,
        "kind": TreeNodeKind.ISSUE,
        "created_at": datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc),
    }
    defaults.update(kwargs)
    return TreeNode(id=node_id, **defaults)


@pytest.fixture
def node_factory() -> Callable[..., TreeNode]:
    """Factory for tree nodes."""
    return make_node


@pytest.fixture
def sample_tree() -> Tree:
    """A small two-root tree: a theme with an epic and issue, and a lone epic."""
    issue = make_node("o/r#3", title="Issue", assignees=["alice"], milestone="6.0")
    epic = make_node(
        "o/r#2",
        title="Epic",
        kind=TreeNodeKind.EPIC,
        priority=1,
        teams=["Runtime"],
        labels=[TreeNodeLabel(name="Epic", background_color="c6415a")],
        children=[issue],
    )
    theme = make_node(
        "o/r#1", title="Theme", kind=TreeNodeKind.THEME, children=[epic]
    )
    lone = make_node("o/r#4", title="Lone", kind=TreeNodeKind.EPIC, is_closed=True)
    return Tree(roots=[theme, lone])


@pytest.fixture
def temp_cache_dir(tmp_path: Path) -> Path:
    """Create temporary cache directory."""
    cache_dir = tmp_path / "data" / "cache"
    cache_dir.mkdir(parents=True)
    return cache_dir
