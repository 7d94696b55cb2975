"""Pydantic models for the source-agnostic themes tree.

A ``Tree`` owns its root ``TreeNode`` objects; each node owns its children.
Parent lookups never go through the nodes themselves: the tree keeps an arena
(pre-order list of distinct nodes) with child and parent index lists that are
rebuilt whenever a tree is constructed or loaded.
"""

import math
from collections.abc import Iterator
from datetime import datetime
from enum import IntEnum
from typing import Any

from pydantic import BaseModel, Field, PrivateAttr


class TreeNodeKind(IntEnum):
    """Hierarchy level of a node, broadest scope first."""

    THEME = 0
    EPIC = 1
    USER_STORY = 2
    ISSUE = 3

    @property
    def display_name(self) -> str:
        return {
            TreeNodeKind.THEME: "Theme",
            TreeNodeKind.EPIC: "Epic",
            TreeNodeKind.USER_STORY: "User Story",
            TreeNodeKind.ISSUE: "Issue",
        }[self]


class TreeNodeCost(IntEnum):
    """Coarse size estimate."""

    SMALL = 0
    MEDIUM = 1
    LARGE = 2
    EXTRA_LARGE = 3

    @classmethod
    def parse(cls, text: str | None) -> "TreeNodeCost | None":
        """Parse a t-shirt size (S, M, L, XL), case-insensitively."""
        if text is None:
            return None
        return _COST_BY_SIZE.get(text.strip().upper())

    @property
    def size(self) -> str:
        return {v: k for k, v in _COST_BY_SIZE.items()}[self]


_COST_BY_SIZE = {
    "S": TreeNodeCost.SMALL,
    "M": TreeNodeCost.MEDIUM,
    "L": TreeNodeCost.LARGE,
    "XL": TreeNodeCost.EXTRA_LARGE,
}


def perceived_brightness(color: str) -> int:
    """Perceived brightness (0-255) of a hex color such as ``ff0000``."""
    value = color.strip().lstrip("#")
    if len(value) == 3:
        value = "".join(c * 2 for c in value)
    r, g, b = (int(value[i : i + 2], 16) for i in (0, 2, 4))
    return int(math.sqrt(r * r * 0.241 + g * g * 0.691 + b * b * 0.068))


class TreeNodeLabel(BaseModel):
    """A label (or tag) attached to a node."""

    name: str = Field(..., description="Label name")
    background_color: str = Field(
        ..., description="Hexadecimal color code without leading #"
    )

    @property
    def foreground_color(self) -> str:
        """Text color that stays readable on ``background_color``."""
        try:
            brightness = perceived_brightness(self.background_color)
        except ValueError:
            return "black"
        return "black" if brightness > 130 else "white"


class TreeNodeStatus(BaseModel):
    """Release and status (project column) of a node."""

    release: str | None = Field(None, description="Release or project name")
    status: str | None = Field(None, description="Column or work item state")

    def __str__(self) -> str:
        return f"{self.release} ({self.status})"


class TreeNode(BaseModel):
    """A node of the themes tree, independent of the source system."""

    id: str = Field(..., description="String form of the item identifier")
    is_private: bool = False
    is_bottom_up: bool = False
    created_at: datetime | None = None
    created_by: str | None = None
    is_closed: bool = False
    title: str = ""
    kind: TreeNodeKind = TreeNodeKind.ISSUE
    priority: int | None = Field(None, description="0 is the highest priority")
    cost: TreeNodeCost | None = None
    milestone: str | None = None
    release_info: TreeNodeStatus | None = None
    teams: list[str] = Field(default_factory=list)
    assignees: list[str] = Field(default_factory=list)
    labels: list[TreeNodeLabel] = Field(default_factory=list)
    url: str | None = None
    children: list["TreeNode"] = Field(default_factory=list)

    @property
    def detail_text(self) -> str:
        if self.created_at is None:
            return self.id
        return f"{self.id} opened {self.created_at:%Y-%m-%d}"

    def descendants_and_self(self) -> Iterator["TreeNode"]:
        """Iterate over this node and its descendants in pre-order."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def descendants(self) -> Iterator["TreeNode"]:
        nodes = self.descendants_and_self()
        next(nodes)
        yield from nodes


def _distinct_with_none(values: Any) -> tuple[Any, ...]:
    """Distinct values sorted with the "no value" sentinel (None) first."""
    distinct = set(values)
    distinct.add(None)
    return tuple(sorted(distinct, key=lambda v: (v is not None, v if v is not None else 0)))


class Tree(BaseModel):
    """An ordered forest of nodes plus indices derived from it.

    The derived indices (distinct assignees, milestones, and so on) and the
    parent lookup are recomputed on construction, so every ``Tree`` is
    consistent with its roots. A published tree is never modified; refreshes
    build a new one.
    """

    roots: list[TreeNode] = Field(default_factory=list)

    _nodes: list[TreeNode] = PrivateAttr(default_factory=list)
    _index: dict[str, int] = PrivateAttr(default_factory=dict)
    _child_indices: list[list[int]] = PrivateAttr(default_factory=list)
    _parent_indices: list[list[int]] = PrivateAttr(default_factory=list)
    _indices: dict[str, tuple[Any, ...]] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context: Any) -> None:
        self._initialize()

    @classmethod
    def empty(cls) -> "Tree":
        return cls(roots=[])

    def _initialize(self) -> None:
        nodes: list[TreeNode] = []
        index: dict[str, int] = {}

        for root in self.roots:
            for node in root.descendants_and_self():
                if node.id not in index:
                    index[node.id] = len(nodes)
                    nodes.append(node)

        child_indices: list[list[int]] = [[] for _ in nodes]
        parent_indices: list[list[int]] = [[] for _ in nodes]
        for position, node in enumerate(nodes):
            for child in node.children:
                child_position = index[child.id]
                child_indices[position].append(child_position)
                if position not in parent_indices[child_position]:
                    parent_indices[child_position].append(position)

        self._nodes = nodes
        self._index = index
        self._child_indices = child_indices
        self._parent_indices = parent_indices
        self._indices = {
            "assignees": _distinct_with_none(a for n in nodes for a in n.assignees),
            "milestones": _distinct_with_none(n.milestone for n in nodes),
            "releases": _distinct_with_none(
                n.release_info.release if n.release_info else None for n in nodes
            ),
            "states": _distinct_with_none(
                n.release_info.status if n.release_info else None for n in nodes
            ),
            "priorities": _distinct_with_none(n.priority for n in nodes),
            "costs": _distinct_with_none(n.cost for n in nodes),
            "teams": _distinct_with_none(t for n in nodes for t in n.teams),
        }

    @property
    def assignees(self) -> tuple[str | None, ...]:
        return self._indices["assignees"]

    @property
    def milestones(self) -> tuple[str | None, ...]:
        return self._indices["milestones"]

    @property
    def releases(self) -> tuple[str | None, ...]:
        return self._indices["releases"]

    @property
    def states(self) -> tuple[str | None, ...]:
        return self._indices["states"]

    @property
    def priorities(self) -> tuple[int | None, ...]:
        return self._indices["priorities"]

    @property
    def costs(self) -> tuple[TreeNodeCost | None, ...]:
        return self._indices["costs"]

    @property
    def teams(self) -> tuple[str | None, ...]:
        return self._indices["teams"]

    def nodes(self) -> list[TreeNode]:
        """All distinct nodes in pre-order."""
        return list(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def contains(self, node_id: str) -> bool:
        return node_id in self._index

    def find(self, node_id: str) -> TreeNode | None:
        position = self._index.get(node_id)
        return None if position is None else self._nodes[position]

    def parents(self, node: TreeNode | str) -> list[TreeNode]:
        """Nodes listing ``node`` as a child.

        At most one for a resolved tree.
        """
        node_id = node if isinstance(node, str) else node.id
        position = self._index.get(node_id)
        if position is None:
            return []
        return [self._nodes[p] for p in self._parent_indices[position]]

    def ancestors(self, node: TreeNode | str) -> list[TreeNode]:
        """Parent chain of ``node``, nearest first."""
        result: list[TreeNode] = []
        seen: set[str] = set()
        parents = self.parents(node)
        while parents and parents[0].id not in seen:
            parent = parents[0]
            seen.add(parent.id)
            result.append(parent)
            parents = self.parents(parent)
        return result
