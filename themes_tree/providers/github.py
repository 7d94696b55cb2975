"""Build the themes forest from GitHub issues.

Root issues are the ones carrying a root label (Theme, Epic, User Story) in
the configured repositories. Their bodies are scanned for parent and child
references, and referenced issues are fetched, breadth first, until no new
issue is discovered. Issues tracked on release project boards get their
board and column as release status.
"""

import asyncio
import logging
import re
import threading
from collections.abc import Callable, Coroutine, Iterable, Sequence
from typing import Any, TypeVar

from github.GithubException import (
    BadCredentialsException,
    GithubException,
    RateLimitExceededException,
)

from ..github_client.client import GitHubClient
from ..github_client.links import IssueLinkType, parse_issue_links
from ..github_client.models import ROOT_LABELS, GitHubIssueCard, GitHubItem
from ..tree.ids import GitHubIssueId, GitHubRepoId
from ..tree.models import Tree, TreeNode
from .base import (
    ItemUnavailableError,
    TransientFetchError,
    TreeProvider,
    build_forest,
    is_bottom_up,
    parse_cost,
    parse_priority,
    parse_teams,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY = 10.0

T = TypeVar("T")


def title_prefix_pattern(labels: Sequence[str]) -> re.Pattern[str]:
    """Pattern matching a leading label token such as ``[Epic]:`` or ``Theme:``."""
    alternatives = "|".join(re.escape(label) for label in labels)
    return re.compile(
        rf"^\s*\[?(?:{alternatives})\]?(?![A-Za-z0-9])\s*:?\s*", re.IGNORECASE
    )


def strip_title_prefix(title: str, pattern: re.Pattern[str]) -> str:
    match = pattern.match(title)
    if not match:
        return title
    stripped = title[match.end() :].strip()
    return stripped or title


class GitHubTreeProvider(TreeProvider):
    """Tree provider for GitHub issues."""

    def __init__(
        self,
        client: GitHubClient,
        repos: Sequence[GitHubRepoId],
        labels: Sequence[str] = ROOT_LABELS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        max_concurrency: int = 1,
    ):
        """Initialize the provider.

        Args:
            client: GitHub client
            repos: Repositories to collect root issues from
            labels: Root labels
            max_retries: Retries of a failed single-issue fetch
            retry_delay: Seconds between retries
            max_concurrency: Concurrent single-issue fetches while expanding
        """
        self.client = client
        self.repos = list(repos)
        self.labels = list(labels)
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.max_concurrency = max_concurrency
        self._title_pattern = title_prefix_pattern(self.labels)
        self._stop = threading.Event()

    @property
    def orgs(self) -> list[str]:
        """Distinct repository owners, in configuration order."""
        result: list[str] = []
        for repo_id in self.repos:
            if repo_id.owner.casefold() not in (org.casefold() for org in result):
                result.append(repo_id.owner)
        return result

    async def fetch_forest(self) -> Tree:
        self.client.clear_cache()
        self._stop = threading.Event()
        await self._wait_for_rate_limit()

        cards_task = asyncio.create_task(self._fetch_cards())
        try:
            root_lists = await self._run_all(
                self._fetch_root_items(repo_id, label)
                for repo_id in self.repos
                for label in self.labels
            )
            items, children = await self._expand(
                [item for root_items in root_lists for item in root_items]
            )
            cards = await cards_task
        finally:
            if not cards_task.done():
                cards_task.cancel()
                await asyncio.wait({cards_task})

        self._apply_cards(items, cards)
        self._fix_titles(items)

        nodes = {issue_id: self._convert_item(item) for issue_id, item in items.items()}
        roots = build_forest(nodes, children)

        logger.info(
            f"Built GitHub forest: {len(items)} issue(s), {len(roots)} root(s), "
            f"{len(cards)} project card(s)"
        )
        return Tree(roots=roots)

    async def _run_blocking(
        self, func: Callable[..., T], *args: Any, **kwargs: Any
    ) -> T:
        """Run a blocking client call in a worker thread.

        Cancelling the caller does not stop the thread, so on cancellation the
        stop flag is raised for the client's paging loops and the cancellation
        is only propagated once the worker has returned.
        """
        worker = asyncio.ensure_future(asyncio.to_thread(func, *args, **kwargs))
        try:
            return await asyncio.shield(worker)
        except asyncio.CancelledError:
            self._stop.set()
            await asyncio.wait({worker})
            if not worker.cancelled() and worker.exception() is not None:
                logger.debug(
                    f"Abandoned {func.__name__} call ended with: {worker.exception()}"
                )
            raise

    async def _run_all(self, coros: Iterable[Coroutine[Any, Any, T]]) -> list[T]:
        """Run coroutines concurrently and return their results in order.

        The first failure cancels the others and is re-raised after they
        have unwound.
        """
        try:
            async with asyncio.TaskGroup() as group:
                tasks = [group.create_task(coro) for coro in coros]
        except ExceptionGroup as e:
            raise e.exceptions[0]
        return [task.result() for task in tasks]

    async def _wait_for_rate_limit(self) -> None:
        delay = await self._run_blocking(self.client.rate_limit_wait)
        if delay > 0:
            logger.warning(f"Rate limit low, sleeping for {delay:.1f} seconds...")
            await asyncio.sleep(delay)

    async def _fetch_root_items(
        self, repo_id: GitHubRepoId, label: str
    ) -> list[GitHubItem]:
        """Issues of one repository carrying one root label.

        A missing label or a failed listing yields no issues.
        """
        try:
            if not await self._run_blocking(self.client.label_exists, repo_id, label):
                logger.warning(f"Label '{label}' does not exist in {repo_id}, skipping")
                return []
            return await self._run_blocking(
                self.client.fetch_root_items, repo_id, label, stop=self._stop
            )
        except BadCredentialsException as e:
            raise TransientFetchError(f"GitHub authentication failed: {e}") from e
        except (GithubException, ValueError) as e:
            logger.warning(f"Could not list '{label}' issues in {repo_id}: {e}")
            return []
        except OSError as e:
            raise TransientFetchError(f"Could not reach GitHub: {e}") from e

    async def _expand(
        self, root_items: list[GitHubItem]
    ) -> tuple[dict[GitHubIssueId, GitHubItem], dict[GitHubIssueId, list[GitHubIssueId]]]:
        """Follow issue links breadth first until no new issue is found.

        Returns:
            Issues by effective id, and parent id -> child ids
        """
        items: dict[GitHubIssueId, GitHubItem] = {}
        # Requested id -> effective id; differs for transferred issues.
        lookup: dict[GitHubIssueId, GitHubIssueId] = {}
        unavailable: set[GitHubIssueId] = set()
        children: dict[GitHubIssueId, list[GitHubIssueId]] = {}

        frontier = []
        for item in root_items:
            if item.id not in items:
                items[item.id] = item
                lookup[item.id] = item.id
                frontier.append(item)

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def visit(issue_id: GitHubIssueId, found: list[GitHubItem]) -> None:
            async with semaphore:
                # An earlier fetch may have turned out to be transferred here.
                if issue_id in lookup:
                    return

                item = await self._fetch_linked_item(issue_id)
                if item is None:
                    unavailable.add(issue_id)
                    return

                if item.id != issue_id:
                    logger.debug(f"{issue_id} was transferred to {item.id}")

                lookup[issue_id] = item.id
                if item.id not in items:
                    items[item.id] = item
                    lookup[item.id] = item.id
                    found.append(item)

        while frontier:
            links = [
                (item, link)
                for item in frontier
                for link in parse_issue_links(item.id.owner, item.id.repo, item.body)
            ]

            unknown: list[GitHubIssueId] = []
            for _, link in links:
                if (
                    link.issue_id not in lookup
                    and link.issue_id not in unavailable
                    and link.issue_id not in unknown
                ):
                    unknown.append(link.issue_id)

            next_frontier: list[GitHubItem] = []
            await self._run_all(visit(issue_id, next_frontier) for issue_id in unknown)

            for item, link in links:
                linked_id = lookup.get(link.issue_id)
                if linked_id is None or linked_id == item.id:
                    continue

                if link.link_type == IssueLinkType.PARENT:
                    parent_id, child_id = linked_id, item.id
                else:
                    parent_id, child_id = item.id, linked_id

                children.setdefault(parent_id, []).append(child_id)

            frontier = next_frontier

        return items, children

    async def _fetch_linked_item(self, issue_id: GitHubIssueId) -> GitHubItem | None:
        try:
            return await self._fetch_item_with_retries(issue_id)
        except ItemUnavailableError as e:
            logger.warning(str(e))
            return None

    async def _fetch_item_with_retries(self, issue_id: GitHubIssueId) -> GitHubItem | None:
        """Fetch one issue, retrying transient failures.

        Raises:
            ItemUnavailableError: If every attempt failed
            TransientFetchError: If GitHub rejected the credentials
        """
        last_error: Exception | None = None

        for attempt in range(self.max_retries + 1):
            if attempt > 0:
                logger.debug(
                    f"Retrying {issue_id} in {self.retry_delay} seconds "
                    f"(attempt {attempt + 1}/{self.max_retries + 1})"
                )
                await asyncio.sleep(self.retry_delay)

            try:
                return await self._run_blocking(self.client.fetch_item, issue_id)
            except BadCredentialsException as e:
                raise TransientFetchError(f"GitHub authentication failed: {e}") from e
            except RateLimitExceededException as e:
                last_error = e
                await self._wait_for_rate_limit()
            except (GithubException, OSError) as e:
                last_error = e

        raise ItemUnavailableError(
            f"Could not fetch {issue_id} after {self.max_retries + 1} attempts: {last_error}"
        )

    async def _fetch_cards(self) -> list[GitHubIssueCard]:
        """Cards of the open release projects of all configured organizations."""
        cards: list[GitHubIssueCard] = []
        try:
            for org in self.orgs:
                projects = await self._run_blocking(
                    self.client.get_release_projects, org, stop=self._stop
                )
                for project in projects:
                    columns = await self._run_blocking(
                        self.client.get_project_columns, project, stop=self._stop
                    )
                    for column in columns:
                        cards.extend(
                            await self._run_blocking(
                                self.client.get_column_cards,
                                project,
                                column,
                                stop=self._stop,
                            )
                        )
        except Exception as e:
            logger.warning(f"Could not fetch project cards, skipping statuses: {e}")
            return []

        return cards

    def _apply_cards(
        self, items: dict[GitHubIssueId, GitHubItem], cards: list[GitHubIssueCard]
    ) -> None:
        for card in cards:
            item = items.get(card.issue_id)
            if item is not None:
                item.project_status = card.status

    def _fix_titles(self, items: dict[GitHubIssueId, GitHubItem]) -> None:
        for item in items.values():
            title = strip_title_prefix(item.title, self._title_pattern)
            if title != item.title:
                logger.debug(f"Stripped label prefix from {item.id}: {title!r}")
                item.title = title

    def _convert_item(self, item: GitHubItem) -> TreeNode:
        names = [label.name for label in item.labels]
        return TreeNode(
            id=str(item.id),
            is_private=item.is_private,
            is_bottom_up=is_bottom_up(names),
            created_at=item.created_at,
            created_by=item.created_by,
            is_closed=item.is_closed,
            title=item.title,
            kind=item.kind,
            priority=parse_priority(names),
            cost=parse_cost(names),
            milestone=item.milestone,
            release_info=item.project_status,
            teams=parse_teams(names),
            assignees=list(item.assignees),
            labels=list(item.labels),
            url=item.url,
        )
