"""Discover parent/child references in issue bodies.

Issue bodies link their hierarchy in two ways:

- a hyperlink whose text starts with "Parent", outside any task list, points
  to the parent issue;
- every task-list item (``- [ ] ...``) references one child issue, via a
  hyperlink, an autolink, or a bare ``owner/repo#123`` / ``#123`` reference.

This is a heuristic: anything that does not parse is skipped, never raised.
"""

import logging
import re
from enum import Enum
from typing import NamedTuple

from markdown_it import MarkdownIt
from markdown_it.token import Token
from mdit_py_plugins.tasklists import tasklists_plugin

from ..tree.ids import GitHubIssueId

logger = logging.getLogger(__name__)

PARENT_LINK_PREFIX = "Parent"
AUTOLINK_MARKUPS = {"autolink", "linkify"}
BARE_REFERENCE_PATTERN = re.compile(
    r"(?:(?P<owner>[A-Za-z0-9-]+)/(?P<repo>[A-Za-z0-9_.-]+))?#(?P<number>[0-9]+)"
)


class IssueLinkType(Enum):
    PARENT = "parent"
    CHILD = "child"


class IssueLink(NamedTuple):
    link_type: IssueLinkType
    issue_id: GitHubIssueId


def _create_parser() -> MarkdownIt:
    return (
        MarkdownIt("commonmark", {"linkify": True})
        .enable("linkify")
        .use(tasklists_plugin)
    )


_parser = _create_parser()


def parse_issue_links(owner: str, repo: str, markdown: str | None) -> list[IssueLink]:
    """Extract parent and child references from an issue body.

    Args:
        owner: Owner of the issue the body belongs to
        repo: Repository of the issue the body belongs to
        markdown: Issue body

    Returns:
        At most one parent link first, then one child link per task-list item
        that references an issue, in document order
    """
    if not markdown:
        return []

    try:
        tokens = _parser.parse(markdown)
    except Exception as e:
        logger.debug(f"Could not parse markdown of an issue in {owner}/{repo}: {e}")
        return []

    result: list[IssueLink] = []

    parent_id = _find_parent_link(tokens)
    if parent_id is not None:
        result.append(IssueLink(IssueLinkType.PARENT, parent_id))

    for inline in _task_list_inlines(tokens):
        child_id = _resolve_task_item(owner, repo, inline)
        if child_id is not None:
            result.append(IssueLink(IssueLinkType.CHILD, child_id))

    return result


def _is_task_list_item(token: Token) -> bool:
    css_class = token.attrGet("class") or ""
    return token.type == "list_item_open" and "task-list-item" in str(css_class)


def _walk_inlines(tokens: list[Token]) -> list[tuple[Token, bool, bool]]:
    """Inline tokens with (inside a task-list item, is a task item's own text)."""
    result = []
    list_items: list[bool] = []

    for index, token in enumerate(tokens):
        if token.type == "list_item_open":
            list_items.append(_is_task_list_item(token))
        elif token.type == "list_item_close":
            if list_items:
                list_items.pop()
        elif token.type == "inline":
            is_item_text = (
                index >= 2
                and tokens[index - 1].type == "paragraph_open"
                and _is_task_list_item(tokens[index - 2])
            )
            result.append((token, any(list_items), is_item_text))

    return result


def _task_list_inlines(tokens: list[Token]) -> list[Token]:
    return [inline for inline, _, is_item_text in _walk_inlines(tokens) if is_item_text]


def _links(inline: Token) -> list[tuple[Token, str]]:
    """``link_open`` tokens of an inline token with their visible text."""
    result = []
    children = inline.children or []

    for index, child in enumerate(children):
        if child.type != "link_open":
            continue

        text_parts = []
        for inner in children[index + 1 :]:
            if inner.type == "link_close":
                break
            text_parts.append(inner.content)

        result.append((child, "".join(text_parts).strip()))

    return result


def _find_parent_link(tokens: list[Token]) -> GitHubIssueId | None:
    for inline, inside_task_list, _ in _walk_inlines(tokens):
        if inside_task_list:
            continue

        for link, text in _links(inline):
            if link.markup in AUTOLINK_MARKUPS:
                continue
            if not text.startswith(PARENT_LINK_PREFIX):
                continue

            issue_id = GitHubIssueId.try_parse(str(link.attrGet("href") or ""))
            if issue_id is not None:
                return issue_id

    return None


def _item_text(inline: Token) -> str:
    return "".join(
        child.content for child in inline.children or [] if child.type == "text"
    ).strip()


def _resolve_task_item(owner: str, repo: str, inline: Token) -> GitHubIssueId | None:
    # A task item pointing at the parent ("- [ ] Parent: #12") is not a child.
    if _item_text(inline).startswith(PARENT_LINK_PREFIX):
        return None

    links = _links(inline)

    for link, _ in links:
        if link.markup not in AUTOLINK_MARKUPS:
            issue_id = GitHubIssueId.try_parse(str(link.attrGet("href") or ""))
            if issue_id is not None:
                return issue_id

    for link, _ in links:
        if link.markup in AUTOLINK_MARKUPS:
            issue_id = GitHubIssueId.try_parse(str(link.attrGet("href") or ""))
            if issue_id is not None:
                return issue_id

    for child in inline.children or []:
        if child.type != "text":
            continue
        match = BARE_REFERENCE_PATTERN.search(child.content)
        if match:
            return GitHubIssueId(
                match.group("owner") or owner,
                match.group("repo") or repo,
                int(match.group("number")),
            )

    return None
