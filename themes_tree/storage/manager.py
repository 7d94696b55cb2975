"""Storage manager for the cached themes tree snapshot."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from .. import __version__
from ..tree.models import Tree

logger = logging.getLogger(__name__)

CACHE_FILENAME = "tree.json"


class StoredTree(BaseModel):
    """A tree snapshot as stored on disk."""

    tree: Tree = Field(..., description="The cached tree")
    metadata: dict[str, Any] = Field(
        default_factory=dict, description="Save timestamp and tool version"
    )


class TreeStorage:
    """Saves and loads the tree snapshot as a JSON file.

    Used in development/offline mode so restarts do not hit the live APIs.
    """

    def __init__(self, base_path: str | Path = "data/cache"):
        """Initialize storage manager.

        Args:
            base_path: Directory holding the cache file
        """
        self.base_path = Path(base_path)

    @property
    def file_path(self) -> Path:
        return self.base_path / CACHE_FILENAME

    def exists(self) -> bool:
        return self.file_path.exists()

    def save_tree(self, tree: Tree, metadata: dict[str, Any] | None = None) -> Path:
        """Save a tree to the cache file.

        Args:
            tree: Tree to save
            metadata: Additional metadata to include

        Returns:
            Path to the saved file
        """
        if metadata is None:
            metadata = {}

        metadata.update(
            {
                "saved_timestamp": datetime.now().isoformat(),
                "tool_version": __version__,
            }
        )

        stored_tree = StoredTree(tree=tree, metadata=metadata)

        self.base_path.mkdir(parents=True, exist_ok=True)
        try:
            with open(self.file_path, "w", encoding="utf-8") as f:
                json.dump(
                    stored_tree.model_dump(mode="json"),
                    f,
                    indent=2,
                    ensure_ascii=False,
                    default=str,
                )
        except Exception as e:
            logger.error(f"Error saving tree to {self.file_path}: {e}")
            raise

        logger.info(f"Saved tree with {len(tree)} node(s) to {self.file_path}")
        return self.file_path

    def load_stored_tree(self) -> StoredTree | None:
        """Load the cache file.

        Returns:
            StoredTree object, or None if there is no cache or it is unreadable
        """
        if not self.file_path.exists():
            return None

        try:
            with open(self.file_path, encoding="utf-8") as f:
                data = json.load(f)
            return StoredTree.model_validate(data)

        except Exception as e:
            logger.warning(f"Error loading cached tree from {self.file_path}: {e}")
            return None

    def load_tree(self) -> Tree | None:
        stored_tree = self.load_stored_tree()
        return stored_tree.tree if stored_tree is not None else None

    def delete(self) -> bool:
        """Remove the cache file. Returns whether a file was removed."""
        if not self.file_path.exists():
            return False
        self.file_path.unlink()
        return True

    def get_storage_stats(self) -> dict[str, Any]:
        """Get statistics about the cached tree.

        Returns:
            Dictionary with storage statistics
        """
        stats: dict[str, Any] = {
            "storage_path": str(self.file_path.absolute()),
            "exists": self.file_path.exists(),
            "total_size_bytes": 0,
            "total_size_mb": 0.0,
            "total_nodes": 0,
            "total_roots": 0,
            "saved_timestamp": None,
        }

        if not stats["exists"]:
            return stats

        size = self.file_path.stat().st_size
        stats["total_size_bytes"] = size
        stats["total_size_mb"] = round(size / (1024 * 1024), 2)

        stored_tree = self.load_stored_tree()
        if stored_tree is not None:
            stats["total_nodes"] = len(stored_tree.tree)
            stats["total_roots"] = len(stored_tree.tree.roots)
            stats["saved_timestamp"] = stored_tree.metadata.get("saved_timestamp")

        return stats
