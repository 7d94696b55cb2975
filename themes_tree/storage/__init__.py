"""Snapshot storage."""

from .manager import CACHE_FILENAME, StoredTree, TreeStorage

__all__ = ["CACHE_FILENAME", "StoredTree", "TreeStorage"]
