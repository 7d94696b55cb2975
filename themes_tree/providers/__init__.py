"""Tree providers: one per source system."""

from .azure_devops import AzureDevOpsTreeProvider
from .base import ItemUnavailableError, TransientFetchError, TreeProvider
from .github import GitHubTreeProvider

__all__ = [
    "AzureDevOpsTreeProvider",
    "GitHubTreeProvider",
    "ItemUnavailableError",
    "TransientFetchError",
    "TreeProvider",
]
