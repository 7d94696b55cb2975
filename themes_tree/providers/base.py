"""Base class and shared helpers for tree providers.

A provider turns one external system into a forest of ``TreeNode`` objects.
Providers are awaited by the refresh orchestrator; cancelling the awaiting
task aborts the provider at its next remote call.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Hashable, Iterable, Mapping

from ..tree.models import Tree, TreeNode, TreeNodeCost
from ..tree.resolver import resolve_forest

logger = logging.getLogger(__name__)

BOTTOM_UP_LABELS = ["Bottom Up Work", "Continuous Improvement"]

PRIORITY_LABEL = "Priority"
COST_LABEL = "Cost"
TEAM_LABEL = "Team"


class TransientFetchError(Exception):
    """A source could not be fetched (network, server or authentication error)."""


class ItemUnavailableError(Exception):
    """A single item could not be fetched after all retries."""


class TreeProvider(ABC):
    """A source of themes tree nodes."""

    @property
    def name(self) -> str:
        return type(self).__name__.replace("TreeProvider", "")

    @abstractmethod
    async def fetch_forest(self) -> Tree:
        """Fetch the source and return its resolved forest.

        Raises:
            TransientFetchError: If the source as a whole could not be fetched
        """


def split_colon_value(text: str) -> tuple[str, str] | None:
    """Split ``Name:Value`` into trimmed parts; None unless there is exactly one colon."""
    parts = text.split(":")
    if len(parts) != 2:
        return None
    return parts[0].strip(), parts[1].strip()


def colon_values(names: Iterable[str], key: str) -> list[str]:
    """Values of all ``key:value`` names, matching ``key`` case-insensitively."""
    result = []
    for name in names:
        pair = split_colon_value(name)
        if pair is not None and pair[0].casefold() == key.casefold():
            result.append(pair[1])
    return result


def parse_priority(names: Iterable[str]) -> int | None:
    """Most urgent (lowest) priority among ``Priority:<n>`` labels."""
    result = None
    for value in colon_values(names, PRIORITY_LABEL):
        try:
            priority = int(value)
        except ValueError:
            continue
        if result is None or priority < result:
            result = priority
    return result


def parse_cost(names: Iterable[str]) -> TreeNodeCost | None:
    """Largest cost among ``Cost:<S|M|L|XL>`` labels."""
    result = None
    for value in colon_values(names, COST_LABEL):
        cost = TreeNodeCost.parse(value)
        if cost is not None and (result is None or cost > result):
            result = cost
    return result


def parse_teams(names: Iterable[str]) -> list[str]:
    """Distinct, sorted teams from ``Team:<name>`` labels."""
    return sorted({value for value in colon_values(names, TEAM_LABEL) if value})


def is_bottom_up(names: Iterable[str]) -> bool:
    folded = {label.casefold() for label in BOTTOM_UP_LABELS}
    return any(name.casefold() in folded for name in names)


def build_forest(
    nodes: Mapping[Hashable, TreeNode],
    children: dict[Hashable, list[Hashable]],
) -> list[TreeNode]:
    """Resolve ``children`` into a forest and attach child nodes.

    Args:
        nodes: Childless nodes by identifier
        children: Parent identifier -> child identifiers (mutated in place)

    Returns:
        Root nodes, in the resolver's canonical order
    """
    report = resolve_forest(nodes, children)

    for parent_id, child_ids in children.items():
        nodes[parent_id].children = [nodes[child_id] for child_id in child_ids]

    return [nodes[root_id] for root_id in report.roots]
