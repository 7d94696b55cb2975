"""Identifiers for items that can appear in the themes tree.

GitHub issues are identified by ``owner/repo#number`` and Azure DevOps work
items by a provider prefix plus their numeric id (``azdo#1234``). Both compare
case-insensitively on their textual parts and numerically on the number, so
they can be used as dictionary keys and as deterministic sort tie-breakers.
"""

import re
from functools import total_ordering

_OWNER = r"(?P<owner>[A-Za-z0-9-]+)"
_REPO = r"(?P<repo>[A-Za-z0-9_.-]+?)"
_NUMBER = r"(?P<number>[0-9]+)"

# Tried in order; the first form that matches anywhere in the text wins.
ISSUE_ID_PATTERNS = [
    re.compile(rf"https?://github\.com/{_OWNER}/{_REPO}/issues/{_NUMBER}"),
    re.compile(rf"https?://api\.github\.com/repos/{_OWNER}/{_REPO}/issues/{_NUMBER}"),
    re.compile(rf"(?<![A-Za-z0-9_./-]){_OWNER}/{_REPO}#{_NUMBER}"),
]

AZURE_DEVOPS_PREFIX = "azdo"
AZURE_DEVOPS_ID_PATTERN = re.compile(rf"^{AZURE_DEVOPS_PREFIX}#(?P<number>[0-9]+)$")


@total_ordering
class GitHubIssueId:
    """Identifier of a GitHub issue."""

    __slots__ = ("owner", "repo", "number")

    def __init__(self, owner: str, repo: str, number: int):
        self.owner = owner
        self.repo = repo
        self.number = number

    @classmethod
    def try_parse(cls, text: str | None) -> "GitHubIssueId | None":
        """Parse an issue reference, returning None when the text has none.

        Accepts web URLs, API URLs and the ``owner/repo#number`` shorthand.
        """
        if not text:
            return None

        for pattern in ISSUE_ID_PATTERNS:
            match = pattern.search(text)
            if match:
                return cls(
                    match.group("owner"),
                    match.group("repo"),
                    int(match.group("number")),
                )

        return None

    @classmethod
    def parse(cls, text: str) -> "GitHubIssueId":
        """Parse an issue reference.

        Raises:
            ValueError: If the text does not contain an issue reference
        """
        result = cls.try_parse(text)
        if result is None:
            raise ValueError(f"Invalid GitHub issue reference: {text!r}")
        return result

    @property
    def url(self) -> str:
        return f"https://github.com/{self.owner}/{self.repo}/issues/{self.number}"

    @property
    def repo_id(self) -> "GitHubRepoId":
        return GitHubRepoId(self.owner, self.repo)

    def _key(self) -> tuple[str, str, int]:
        return (self.owner.casefold(), self.repo.casefold(), self.number)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GitHubIssueId):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, GitHubIssueId):
            return NotImplemented
        return self._key() < other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        return f"{self.owner}/{self.repo}#{self.number}"

    def __repr__(self) -> str:
        return f"GitHubIssueId({self.owner!r}, {self.repo!r}, {self.number})"


@total_ordering
class GitHubRepoId:
    """Identifier of a GitHub repository (``owner/name``)."""

    __slots__ = ("owner", "name")

    def __init__(self, owner: str, name: str):
        self.owner = owner
        self.name = name

    @classmethod
    def parse(cls, text: str) -> "GitHubRepoId":
        """Parse ``owner/name``.

        Raises:
            ValueError: If the text is not of the form ``owner/name``
        """
        parts = text.split("/")
        if len(parts) != 2:
            raise ValueError(f"Invalid repository '{text}'. Expected owner/name")

        owner = parts[0].strip()
        name = parts[1].strip()
        if not owner or not name:
            raise ValueError(f"Invalid repository '{text}'. Expected owner/name")

        return cls(owner, name)

    def _key(self) -> tuple[str, str]:
        return (self.owner.casefold(), self.name.casefold())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GitHubRepoId):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, GitHubRepoId):
            return NotImplemented
        return self._key() < other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        return f"{self.owner}/{self.name}"

    def __repr__(self) -> str:
        return f"GitHubRepoId({self.owner!r}, {self.name!r})"


@total_ordering
class AzureDevOpsId:
    """Identifier of an Azure DevOps work item."""

    __slots__ = ("number",)

    provider = AZURE_DEVOPS_PREFIX

    def __init__(self, number: int):
        self.number = number

    @classmethod
    def try_parse(cls, text: str | None) -> "AzureDevOpsId | None":
        if not text:
            return None
        match = AZURE_DEVOPS_ID_PATTERN.match(text.strip().lower())
        if not match:
            return None
        return cls(int(match.group("number")))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AzureDevOpsId):
            return NotImplemented
        return self.number == other.number

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, AzureDevOpsId):
            return NotImplemented
        return self.number < other.number

    def __hash__(self) -> int:
        return hash((self.provider, self.number))

    def __str__(self) -> str:
        return f"{self.provider}#{self.number}"

    def __repr__(self) -> str:
        return f"AzureDevOpsId({self.number})"


def parse_node_id(text: str | None) -> GitHubIssueId | AzureDevOpsId | None:
    """Parse the string id of a tree node back into its identifier."""
    return AzureDevOpsId.try_parse(text) or GitHubIssueId.try_parse(text)
