"""Turn a partially linked item graph into a forest.

Links between items are scraped from free text and external APIs, so the
child-adjacency map handed to ``resolve_forest`` can contain cycles, items
with several parents, duplicate edges and references to items that were never
fetched. ``resolve_forest`` edits the map in place until every item has at
most one parent and no item can reach itself, and reports the roots.

Conflicts are settled in a fixed priority order (closed items first, then by
kind, title and id) so the same input always yields the same forest.
"""

import logging
from collections.abc import Hashable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from .models import TreeNodeKind

logger = logging.getLogger(__name__)


class ResolvableItem(Protocol):
    """What the resolver needs to know about an item."""

    @property
    def is_closed(self) -> bool: ...

    @property
    def kind(self) -> TreeNodeKind: ...

    @property
    def title(self) -> str: ...


Edge = tuple[Any, Any]


@dataclass
class ResolutionReport:
    """Edges removed while resolving, and the resulting roots."""

    roots: list[Any] = field(default_factory=list)
    cycle_edges: list[Edge] = field(default_factory=list)
    closed_parent_edges: list[Edge] = field(default_factory=list)
    duplicate_parent_edges: list[Edge] = field(default_factory=list)

    @property
    def removed_edges(self) -> list[Edge]:
        return (
            self.cycle_edges + self.closed_parent_edges + self.duplicate_parent_edges
        )


def canonical_key(item_id: Any, item: ResolvableItem) -> tuple[Any, ...]:
    """Conflict-resolution order: closed before open, then kind, title, id."""
    return (0 if item.is_closed else 1, int(item.kind), item.title, item_id)


def resolve_forest(
    items: Mapping[Hashable, ResolvableItem],
    children: dict[Hashable, list[Hashable]],
) -> ResolutionReport:
    """Resolve ``children`` (parent id -> child ids) into a forest in place.

    Args:
        items: All known items by id. Ids must be mutually orderable.
        children: Child-adjacency map. Edges to or from unknown ids are dropped.

    Returns:
        ResolutionReport with the removed edges and the roots in canonical order
    """
    _normalize(items, children)

    order = sorted(items, key=lambda item_id: canonical_key(item_id, items[item_id]))
    rank = {item_id: position for position, item_id in enumerate(order)}

    report = ResolutionReport()
    _break_cycles(order, children, report)

    parents = _compute_parents(order, children)
    _drop_closed_parents(order, items, children, parents, report)
    _drop_duplicate_parents(order, rank, children, parents, report)

    report.roots = [item_id for item_id in order if not parents[item_id]]

    if report.removed_edges:
        logger.debug(
            f"Resolved forest: removed {len(report.cycle_edges)} cycle edge(s), "
            f"{len(report.closed_parent_edges)} closed-parent edge(s), "
            f"{len(report.duplicate_parent_edges)} duplicate-parent edge(s)"
        )

    return report


def _normalize(
    items: Mapping[Hashable, ResolvableItem],
    children: dict[Hashable, list[Hashable]],
) -> None:
    for parent_id in list(children):
        if parent_id not in items:
            del children[parent_id]

    for item_id in items:
        seen: set[Hashable] = set()
        kept = []
        for child_id in children.get(item_id, []):
            if child_id in items and child_id not in seen:
                seen.add(child_id)
                kept.append(child_id)
        children[item_id] = kept


def _break_cycles(
    order: list[Hashable],
    children: dict[Hashable, list[Hashable]],
    report: ResolutionReport,
) -> None:
    """Remove every child edge that points back into the current walk path.

    Walks depth-first from each item in canonical order with an explicit
    stack. Items whose subtree was already walked are not walked again: none
    of their edges can point into a later path.
    """
    finished: set[Hashable] = set()

    for start in order:
        if start in finished:
            continue

        path = {start}
        stack: list[tuple[Hashable, int]] = [(start, 0)]

        while stack:
            node, position = stack[-1]
            node_children = children[node]

            if position >= len(node_children):
                stack.pop()
                path.discard(node)
                finished.add(node)
                continue

            child = node_children[position]
            if child in path:
                del node_children[position]
                report.cycle_edges.append((node, child))
                continue

            stack[-1] = (node, position + 1)
            if child not in finished:
                path.add(child)
                stack.append((child, 0))


def _compute_parents(
    order: list[Hashable], children: dict[Hashable, list[Hashable]]
) -> dict[Hashable, list[Hashable]]:
    parents: dict[Hashable, list[Hashable]] = {item_id: [] for item_id in order}
    for parent_id in order:
        for child_id in children[parent_id]:
            parents[child_id].append(parent_id)
    return parents


def _drop_closed_parents(
    order: list[Hashable],
    items: Mapping[Hashable, ResolvableItem],
    children: dict[Hashable, list[Hashable]],
    parents: dict[Hashable, list[Hashable]],
    report: ResolutionReport,
) -> None:
    """Detach open items from closed parents when an open parent claims them."""
    for item_id in order:
        if items[item_id].is_closed:
            continue

        item_parents = parents[item_id]
        open_parents = [p for p in item_parents if not items[p].is_closed]
        closed_parents = [p for p in item_parents if items[p].is_closed]
        if not open_parents or not closed_parents:
            continue

        for parent_id in closed_parents:
            children[parent_id].remove(item_id)
            report.closed_parent_edges.append((parent_id, item_id))

        parents[item_id] = open_parents


def _drop_duplicate_parents(
    order: list[Hashable],
    rank: dict[Hashable, int],
    children: dict[Hashable, list[Hashable]],
    parents: dict[Hashable, list[Hashable]],
    report: ResolutionReport,
) -> None:
    """Keep only the canonically first parent of items that still have several."""
    for item_id in order:
        item_parents = parents[item_id]
        if len(item_parents) <= 1:
            continue

        keep = min(item_parents, key=rank.__getitem__)
        for parent_id in item_parents:
            if parent_id != keep:
                children[parent_id].remove(item_id)
                report.duplicate_parent_edges.append((parent_id, item_id))

        parents[item_id] = [keep]
