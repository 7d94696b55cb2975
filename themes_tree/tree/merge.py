"""Merge per-source forests and put them in display order."""

from typing import Any

from .models import Tree, TreeNode


def display_sort_key(node: TreeNode) -> tuple[Any, ...]:
    """Display order: kind, priority (ascending), cost (descending), title, id.

    Nodes without a priority or a cost sort after the ones that have one.
    """
    return (
        int(node.kind),
        node.priority is None,
        node.priority if node.priority is not None else 0,
        node.cost is None,
        -int(node.cost) if node.cost is not None else 0,
        node.title,
        node.id,
    )


def merge_trees(*trees: Tree) -> Tree:
    """Concatenate the roots of several trees into a new tree.

    Source id namespaces are disjoint (``azdo#N`` vs ``owner/repo#N``), so no
    collision handling is done.
    """
    return Tree(roots=[root for tree in trees for root in tree.roots])


def sort_tree(tree: Tree) -> Tree:
    """Return a copy of ``tree`` with roots and all children in display order."""
    return Tree(roots=_sort_nodes(tree.roots))


def _sort_nodes(nodes: list[TreeNode]) -> list[TreeNode]:
    result = [
        node.model_copy(update={"children": _sort_nodes(node.children)})
        for node in nodes
    ]
    result.sort(key=display_sort_key)
    return result
