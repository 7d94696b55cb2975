"""Build the themes forest from an Azure DevOps tree query.

All work items of the query end up under one synthetic, private Theme node
named after the query.
"""

import logging
import re
from datetime import datetime, timezone

import httpx

from ..azure_devops.client import AzureDevOpsClient
from ..azure_devops.models import AzureWorkItem
from ..tree.ids import AZURE_DEVOPS_PREFIX, AzureDevOpsId
from ..tree.models import (
    Tree,
    TreeNode,
    TreeNodeCost,
    TreeNodeKind,
    TreeNodeLabel,
    TreeNodeStatus,
)
from .base import (
    TransientFetchError,
    TreeProvider,
    build_forest,
    is_bottom_up,
    parse_teams,
)

logger = logging.getLogger(__name__)

CLOSED_STATES = ["Cut", "Completed"]

THEME_COLOR = "800080"
KIND_LABELS = {
    TreeNodeKind.EPIC: TreeNodeLabel(name="Epic", background_color="c6415a"),
    TreeNodeKind.USER_STORY: TreeNodeLabel(
        name="User Story", background_color="0e8a16"
    ),
}
PRIORITY_COLORS = {0: "b60205", 1: "d93f0b", 2: "e99695", 3: "f9d0c4"}
COST_COLORS = {
    TreeNodeCost.SMALL: "bfdadc",
    TreeNodeCost.MEDIUM: "c2e0c6",
    TreeNodeCost.LARGE: "0e8a16",
    TreeNodeCost.EXTRA_LARGE: "006b75",
}
TAG_COLOR = "c5def5"


def convert_kind(work_item_type: str) -> TreeNodeKind:
    folded = work_item_type.casefold()
    if folded == "scenario":
        return TreeNodeKind.EPIC
    if folded == "experience":
        return TreeNodeKind.USER_STORY
    return TreeNodeKind.ISSUE


def convert_is_closed(state: str | None) -> bool:
    if state is None:
        return False
    return state.casefold() in (s.casefold() for s in CLOSED_STATES)


def convert_priority(priority: int | None) -> int | None:
    if priority is not None and 0 <= priority <= 3:
        return priority
    return None


def _join(*parts: str | None) -> str | None:
    result = " ".join(part.strip() for part in parts if part and part.strip())
    return result or None


def _replace_ignore_case(text: str, old: str, new: str) -> str:
    return re.sub(re.escape(old), new, text, flags=re.IGNORECASE)


def convert_release(work_item: AzureWorkItem) -> str | None:
    """``Dev16`` + ``16.8`` -> ``VS 16.8``; ``NET6`` + ``6.0`` -> ``.NET SDK 6.0``."""
    release = work_item.release
    if release is not None:
        folded = release.casefold()
        if folded.startswith("dev"):
            release = "VS"
        elif folded.startswith("net") or folded.startswith(".net"):
            release = ".NET SDK"
    return _join(release, work_item.milestone)


def convert_milestone(work_item: AzureWorkItem) -> str | None:
    """``16.8`` + ``Preview 2`` -> ``16.8 P2``."""
    target = work_item.target
    if target is not None:
        target = _replace_ignore_case(target, ".NET", "")
        target = _replace_ignore_case(target, "Preview ", "P")
        target = _replace_ignore_case(target, "Preview", "P")
    return _join(work_item.milestone, target)


def create_labels(work_item: AzureWorkItem) -> list[TreeNodeLabel]:
    """Synthetic kind, priority and cost labels, followed by one label per tag."""
    result = []

    kind_label = KIND_LABELS.get(convert_kind(work_item.type))
    if kind_label is not None:
        result.append(kind_label.model_copy())

    priority = convert_priority(work_item.priority)
    if priority is not None:
        result.append(
            TreeNodeLabel(
                name=f"Priority:{priority}",
                background_color=PRIORITY_COLORS[priority],
            )
        )

    cost = TreeNodeCost.parse(work_item.cost)
    if cost is not None:
        result.append(
            TreeNodeLabel(name=f"Cost:{cost.size}", background_color=COST_COLORS[cost])
        )

    result.extend(
        TreeNodeLabel(name=tag, background_color=TAG_COLOR) for tag in work_item.tags
    )
    return result


def convert_work_item(work_item: AzureWorkItem) -> TreeNode:
    return TreeNode(
        id=str(AzureDevOpsId(work_item.id)),
        is_private=True,
        is_bottom_up=is_bottom_up(work_item.tags),
        created_at=work_item.created_at,
        created_by=work_item.created_by,
        is_closed=convert_is_closed(work_item.state),
        title=work_item.title,
        kind=convert_kind(work_item.type),
        priority=convert_priority(work_item.priority),
        cost=TreeNodeCost.parse(work_item.cost),
        milestone=convert_milestone(work_item),
        release_info=TreeNodeStatus(
            release=convert_release(work_item), status=work_item.state
        ),
        teams=parse_teams(work_item.tags),
        assignees=[work_item.assigned_to] if work_item.assigned_to else [],
        labels=create_labels(work_item),
        url=work_item.url,
    )


class AzureDevOpsTreeProvider(TreeProvider):
    """Tree provider for an Azure DevOps saved tree query."""

    def __init__(
        self,
        url: str | None,
        token: str | None = None,
        query_id: str | None = None,
        query_title: str | None = None,
        query_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url
        self.token = token
        self.query_id = query_id
        self.query_title = query_title
        self.query_url = query_url
        self.transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.url and self.query_id)

    async def fetch_forest(self) -> Tree:
        if not self.is_configured:
            logger.debug("Azure DevOps is not configured, skipping")
            return Tree.empty()

        try:
            async with AzureDevOpsClient(
                self.url, self.token, transport=self.transport
            ) as client:
                work_items, relations = await client.fetch_work_item_tree(
                    self.query_id
                )
        except httpx.HTTPError as e:
            raise TransientFetchError(f"Could not query Azure DevOps: {e}") from e

        nodes = {AzureDevOpsId(item.id): convert_work_item(item) for item in work_items}

        children: dict[AzureDevOpsId, list[AzureDevOpsId]] = {}
        for relation in relations:
            if relation.is_hierarchy:
                children.setdefault(AzureDevOpsId(relation.source_id), []).append(
                    AzureDevOpsId(relation.target_id)
                )

        roots = sorted(
            build_forest(nodes, children),
            key=lambda node: AzureDevOpsId.try_parse(node.id),
        )
        theme = self._create_theme_node(roots)

        logger.info(
            f"Built Azure DevOps forest: {len(nodes)} work item(s), "
            f"{len(roots)} root(s)"
        )
        return Tree(roots=[theme])

    def _create_theme_node(self, roots: list[TreeNode]) -> TreeNode:
        theme = TreeNode(
            id=AZURE_DEVOPS_PREFIX,
            is_private=True,
            title=self.query_title or "",
            kind=TreeNodeKind.THEME,
            url=self.query_url,
            labels=[TreeNodeLabel(name="Theme", background_color=THEME_COLOR)],
            children=roots,
        )

        created = [
            node.created_at
            for node in theme.descendants()
            if node.created_at is not None
        ]
        theme.created_at = min(created) if created else datetime.now(timezone.utc)
        return theme
