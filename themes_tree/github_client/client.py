"""GitHub API client using PyGitHub."""

import logging
import os
import re
import threading
import time
from typing import Any

from github import Github
from github.GithubException import GithubException, UnknownObjectException
from github.Issue import Issue
from github.Label import Label
from github.Repository import Repository

from ..tree.ids import GitHubIssueId, GitHubRepoId
from ..tree.models import TreeNodeLabel
from .models import GitHubIssueCard, GitHubItem

logger = logging.getLogger(__name__)

# Release boards are organization projects named like ".NET 6.0".
RELEASE_PROJECT_PREFIX = ".NET"
_VERSION_PATTERN = re.compile(r"^[0-9]+(\.[0-9]+){1,3}$")

# Status codes GitHub uses for issues that are gone.
GONE_STATUS_CODES = {404, 410}


class FetchStoppedError(Exception):
    """A listing was abandoned because its caller stopped waiting for it."""


def _check_stop(stop: threading.Event | None, what: str) -> None:
    if stop is not None and stop.is_set():
        raise FetchStoppedError(f"Stopped while listing {what}")


def is_release_project(name: str) -> bool:
    """Whether a project name looks like ``.NET <major>.<minor>[...]``."""
    if not name.casefold().startswith(RELEASE_PROJECT_PREFIX.casefold()):
        return False
    version = name[len(RELEASE_PROJECT_PREFIX) :].strip()
    return bool(_VERSION_PATTERN.match(version))


class GitHubClient:
    """GitHub API client with rate limiting and authentication.

    All calls are blocking; async callers run them in a worker thread.
    """

    def __init__(self, token: str | None = None, github: Github | None = None):
        """Initialize GitHub client with authentication.

        Args:
            token: GitHub personal access token. If None, reads from
                GITHUB_TOKEN env var.
            github: Preconfigured PyGitHub instance (mainly for tests)
        """
        self.token = token or os.getenv("GITHUB_TOKEN")
        if github is None and not self.token:
            raise ValueError(
                "GitHub token is required. Set GITHUB_TOKEN environment variable."
            )

        self.github = github or Github(self.token)
        self._repositories: dict[GitHubRepoId, Repository] = {}

    def rate_limit_wait(self) -> float:
        """Seconds to wait before issuing more requests (0 when not rate limited)."""
        try:
            rate_limit = self.github.get_rate_limit()
            # Newer PyGithub nests the per-resource limits under `resources`.
            core = getattr(rate_limit, "resources", rate_limit).core
            remaining = core.remaining
            logger.debug(f"GitHub API rate limit: {remaining} requests remaining")

            if remaining < 10:
                reset_time = core.reset.timestamp()
                return max(reset_time - time.time() + 1, 0.0)

        except Exception as e:
            # Not critical: the next request reports the real problem.
            logger.debug(f"Could not check GitHub rate limit: {e}")

        return 0.0

    def clear_cache(self) -> None:
        """Forget cached repository metadata (done once per tree build)."""
        self._repositories.clear()

    def get_repository(self, repo_id: GitHubRepoId) -> Repository:
        """Get repository object, cached per repository."""
        repository = self._repositories.get(repo_id)
        if repository is not None:
            return repository

        try:
            repository = self.github.get_repo(str(repo_id))
        except UnknownObjectException:
            raise ValueError(f"Repository {repo_id} not found")

        self._repositories[repo_id] = repository
        return repository

    def label_exists(self, repo_id: GitHubRepoId, label: str) -> bool:
        """Check whether a label is defined in a repository.

        Listing issues by a label the repository does not have returns every
        issue instead of none, so callers check first.
        """
        repository = self.get_repository(repo_id)
        try:
            repository.get_label(label)
        except UnknownObjectException:
            return False
        return True

    def fetch_root_items(
        self,
        repo_id: GitHubRepoId,
        label: str,
        stop: threading.Event | None = None,
    ) -> list[GitHubItem]:
        """Get all open and closed issues of a repository carrying ``label``.

        Pull requests and issues whose URL points to another repository are
        skipped.

        Raises:
            FetchStoppedError: If ``stop`` is set while pages are still being read
        """
        repository = self.get_repository(repo_id)

        result = []
        for github_issue in repository.get_issues(state="all", labels=[label]):
            _check_stop(stop, f"'{label}' issues in {repo_id}")
            if github_issue.pull_request is not None:
                continue

            item = self._convert_issue(github_issue, repository.private)
            if item.id.repo_id != repo_id:
                logger.debug(f"Skipping {item.id}: listed under {repo_id}")
                continue

            result.append(item)

        logger.debug(f"Fetched {len(result)} issue(s) labeled '{label}' in {repo_id}")
        return result

    def fetch_item(self, issue_id: GitHubIssueId) -> GitHubItem | None:
        """Get a single issue.

        Returns:
            The issue, identified by its own URL (which differs from
            ``issue_id`` when the issue was transferred), or None when the
            issue does not exist, was deleted, or is a pull request

        Raises:
            GithubException: For errors other than "not found"
        """
        try:
            repository = self.get_repository(issue_id.repo_id)
        except ValueError:
            logger.debug(f"Skipping {issue_id}: repository not found")
            return None

        try:
            github_issue = repository.get_issue(issue_id.number)
        except UnknownObjectException:
            logger.debug(f"Skipping {issue_id}: not found")
            return None
        except GithubException as e:
            if e.status in GONE_STATUS_CODES:
                logger.debug(f"Skipping {issue_id}: deleted")
                return None
            raise

        if github_issue.pull_request is not None:
            logger.debug(f"Skipping {issue_id}: pull request")
            return None

        effective_id = GitHubIssueId.try_parse(github_issue.html_url) or issue_id
        is_private = repository.private
        if effective_id.repo_id != issue_id.repo_id:
            try:
                is_private = self.get_repository(effective_id.repo_id).private
            except ValueError:
                logger.debug(f"Repository of transferred issue {effective_id} not found")

        return self._convert_issue(github_issue, is_private, effective_id)

    def get_release_projects(
        self, org: str, stop: threading.Event | None = None
    ) -> list[Any]:
        """Get the open release projects (``.NET <version>``) of an organization."""
        organization = self.github.get_organization(org)
        result = []
        for project in organization.get_projects(state="open"):
            _check_stop(stop, f"projects of {org}")
            if is_release_project(project.name):
                result.append(project)
        return result

    def get_project_columns(
        self, project: Any, stop: threading.Event | None = None
    ) -> list[Any]:
        result = []
        for column in project.get_columns():
            _check_stop(stop, f"columns of {project.name}")
            result.append(column)
        return result

    def get_column_cards(
        self, project: Any, column: Any, stop: threading.Event | None = None
    ) -> list[GitHubIssueCard]:
        """Get the cards of a project column that reference an issue."""
        result = []
        for card in column.get_cards():
            _check_stop(stop, f"cards of {project.name} / {column.name}")
            issue_id = GitHubIssueId.try_parse(card.content_url) or GitHubIssueId.try_parse(
                card.note
            )
            if issue_id is not None:
                result.append(
                    GitHubIssueCard(
                        issue_id=issue_id,
                        project_name=project.name,
                        column_name=column.name,
                    )
                )
        return result

    def _convert_label(self, github_label: Label) -> TreeNodeLabel:
        """Convert PyGitHub label to our model."""
        return TreeNodeLabel(name=github_label.name, background_color=github_label.color)

    def _convert_issue(
        self,
        github_issue: Issue,
        is_private: bool,
        issue_id: GitHubIssueId | None = None,
    ) -> GitHubItem:
        """Convert PyGitHub issue to our model."""
        if issue_id is None:
            issue_id = GitHubIssueId.parse(github_issue.html_url)

        milestone = github_issue.milestone.title if github_issue.milestone else None
        created_by = github_issue.user.login if github_issue.user else None

        return GitHubItem(
            id=issue_id,
            is_private=is_private,
            created_at=github_issue.created_at,
            created_by=created_by,
            is_closed=github_issue.closed_at is not None,
            title=github_issue.title or "",
            body=github_issue.body,
            milestone=milestone,
            assignees=[assignee.login for assignee in github_issue.assignees],
            labels=[self._convert_label(label) for label in github_issue.labels],
        )
