"""Configuration for the themes tree sources."""

import os

from .tree.ids import GitHubRepoId

TRUTHY_VALUES = {"1", "true", "yes", "on"}


def _parse_bool(value: str | None) -> bool:
    return value is not None and value.strip().lower() in TRUTHY_VALUES


class ThemesConfig:
    """Configuration class read from environment variables."""

    def __init__(self) -> None:
        """Initialize configuration from environment variables."""
        self.github_token: str | None = os.getenv("GITHUB_TOKEN")
        self.repos_text: str = os.getenv("THEMES_REPOS", "")

        self.azure_devops_url: str | None = os.getenv("AZURE_DEVOPS_URL") or None
        self.azure_devops_token: str | None = os.getenv("AZURE_DEVOPS_TOKEN")
        self.azure_devops_query_id: str | None = os.getenv("AZURE_DEVOPS_QUERY_ID")
        self.azure_devops_query_title: str | None = os.getenv(
            "AZURE_DEVOPS_QUERY_TITLE"
        )
        self.azure_devops_query_url: str | None = os.getenv("AZURE_DEVOPS_QUERY_URL")

        self.development: bool = _parse_bool(os.getenv("THEMES_DEVELOPMENT"))
        self.cache_dir: str = os.getenv("THEMES_CACHE_DIR", "data/cache")

    @property
    def repos(self) -> list[GitHubRepoId]:
        """Configured repositories (comma separated ``owner/name`` list).

        Raises:
            ValueError: If an entry is not of the form ``owner/name``
        """
        return [
            GitHubRepoId.parse(entry)
            for entry in self.repos_text.split(",")
            if entry.strip()
        ]

    def is_github_configured(self) -> bool:
        return bool(self.github_token) and bool(self.repos_text.strip())

    def is_azure_devops_configured(self) -> bool:
        return self.azure_devops_url is not None

    def validate(self) -> None:
        """Validate configuration and raise error if invalid."""
        missing = []
        if not self.github_token:
            missing.append("GITHUB_TOKEN")
        if not self.repos_text.strip():
            missing.append("THEMES_REPOS")
        if self.is_azure_devops_configured():
            if not self.azure_devops_token:
                missing.append("AZURE_DEVOPS_TOKEN")
            if not self.azure_devops_query_id:
                missing.append("AZURE_DEVOPS_QUERY_ID")

        if missing:
            raise ValueError(
                f"Environment variables required for the themes tree: {', '.join(missing)}"
            )

        if not self.repos:
            raise ValueError("THEMES_REPOS does not list any repository")
