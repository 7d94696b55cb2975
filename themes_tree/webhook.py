"""Decide whether a GitHub webhook delivery should refresh the tree.

A delivery is relevant when its action can change the tree and it either
references an issue already in the tree or involves a root label.
"""

import asyncio
import json
import logging
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from .github_client.models import ROOT_LABELS
from .service import TreeService
from .tree.ids import GitHubIssueId, parse_node_id
from .tree.models import Tree

logger = logging.getLogger(__name__)

RELEVANT_ACTIONS = {
    "opened",
    "edited",
    "deleted",
    "closed",
    "reopened",
    "assigned",
    "unassigned",
    "labeled",
    "unlabeled",
    "transferred",
    "milestoned",
    "demilestoned",
    "created",
    "moved",
}

RELEVANT_LABELS = {label.casefold() for label in ROOT_LABELS}

# Refreshes started by deliveries; referenced until done.
_background_tasks: set[asyncio.Task[bool]] = set()


class WebhookLabel(BaseModel):
    name: str | None = None


class WebhookRepository(BaseModel):
    full_name: str | None = None


class WebhookIssue(BaseModel):
    number: int
    labels: list[WebhookLabel] = Field(default_factory=list)


class WebhookProjectCard(BaseModel):
    content_url: str | None = None


class WebhookPayload(BaseModel):
    """The parts of an issue, label or project card event we look at."""

    action: str | None = None
    issue: WebhookIssue | None = None
    repository: WebhookRepository | None = None
    label: WebhookLabel | None = None
    project_card: WebhookProjectCard | None = None


def parse_payload(data: str | bytes | dict[str, Any]) -> WebhookPayload | None:
    """Validate a webhook body; None if it is malformed."""
    try:
        if isinstance(data, (str, bytes)):
            data = json.loads(data)
        return WebhookPayload.model_validate(data)
    except (ValueError, ValidationError) as e:
        logger.error(f"Can't deserialize GitHub webhook: {e}")
        return None


def known_ids(tree: Tree | None) -> set[GitHubIssueId]:
    """GitHub issue ids present in a tree."""
    if tree is None:
        return set()

    result = set()
    for node in tree.nodes():
        issue_id = parse_node_id(node.id)
        if isinstance(issue_id, GitHubIssueId):
            result.add(issue_id)
    return result


def _is_relevant_label(label: WebhookLabel | None) -> bool:
    return label is not None and label.name is not None and (
        label.name.casefold() in RELEVANT_LABELS
    )


def is_relevant(
    payload: WebhookPayload | dict[str, Any], known: set[GitHubIssueId]
) -> bool:
    """Whether a webhook delivery may change the tree."""
    if not isinstance(payload, WebhookPayload):
        parsed = parse_payload(payload)
        if parsed is None:
            return False
        payload = parsed

    if payload.action is None or payload.action.lower() not in RELEVANT_ACTIONS:
        return False

    if payload.issue is not None and payload.repository is not None:
        issue_id = GitHubIssueId.try_parse(
            f"{payload.repository.full_name}#{payload.issue.number}"
        )
        if issue_id is not None and issue_id in known:
            return True

    if payload.project_card is not None:
        issue_id = GitHubIssueId.try_parse(payload.project_card.content_url)
        if issue_id is not None and issue_id in known:
            return True

    if _is_relevant_label(payload.label):
        return True

    return payload.issue is not None and any(
        _is_relevant_label(label) for label in payload.issue.labels
    )


def handle_webhook(
    service: TreeService, data: str | bytes | dict[str, Any]
) -> bool:
    """Start a refresh if the delivery is relevant, without waiting for it.

    Must be called from a running event loop.
    """
    payload = parse_payload(data)
    if payload is None:
        return False

    relevant = is_relevant(payload, known_ids(service.tree))
    logger.info(f"Processed GitHub webhook: action={payload.action} relevant={relevant}")

    if relevant:
        task = asyncio.create_task(service.invalidate())
        _background_tasks.add(task)
        task.add_done_callback(_background_tasks.discard)

    return relevant
