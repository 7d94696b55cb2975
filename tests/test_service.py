"""Tests for refresh orchestration."""

import asyncio
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from themes_tree.config import ThemesConfig
from themes_tree.providers.azure_devops import AzureDevOpsTreeProvider
from themes_tree.providers.base import TransientFetchError, TreeProvider
from themes_tree.providers.github import GitHubTreeProvider
from themes_tree.service import LoadTreeJob, TreeService, create_tree_service
from themes_tree.storage.manager import TreeStorage
from themes_tree.tree.models import Tree, TreeNode, TreeNodeKind


def make_node(node_id: str, **kwargs: Any) -> TreeNode:
    kwargs.setdefault("created_at", datetime(2024, 1, 1, tzinfo=timezone.utc))
    return TreeNode(id=node_id, title=node_id, **kwargs)


class StaticTreeProvider(TreeProvider):
    """Returns a fixed tree, counting calls."""

    def __init__(self, tree: Tree):
        self.tree = tree
        self.calls = 0

    async def fetch_forest(self) -> Tree:
        self.calls += 1
        await asyncio.sleep(0)
        return self.tree


class FailingTreeProvider(TreeProvider):
    async def fetch_forest(self) -> Tree:
        raise TransientFetchError("source is down")


class BlockingTreeProvider(TreeProvider):
    """Blocks on its first call until cancelled; records the order of events."""

    def __init__(self) -> None:
        self.events: list[str] = []
        self.started = asyncio.Event()
        self.calls = 0

    async def fetch_forest(self) -> Tree:
        self.calls += 1
        call = self.calls
        self.events.append(f"start {call}")
        if call == 1:
            self.started.set()
            try:
                await asyncio.Event().wait()
            finally:
                self.events.append(f"unwound {call}")
        return Tree(roots=[make_node(f"o/r#{call}")])


def tree_of(*ids: str) -> Tree:
    return Tree(roots=[make_node(node_id) for node_id in ids])


class TestTreeService:
    """Test TreeService."""

    @pytest.mark.asyncio
    async def test_initial_state(self) -> None:
        """Test nothing is published before the first load."""
        service = TreeService([])

        assert service.tree is None
        assert service.snapshot is None
        assert service.version == 0
        assert not service.is_loading

    @pytest.mark.asyncio
    async def test_publishes_merged_sorted_tree(self) -> None:
        """Test provider forests are merged and sorted into one snapshot."""
        github = StaticTreeProvider(tree_of("o/r#2"))
        azure = StaticTreeProvider(
            Tree(roots=[make_node("azdo", kind=TreeNodeKind.THEME)])
        )
        service = TreeService([github, azure])

        assert await service.invalidate()

        assert [root.id for root in service.tree.roots] == ["azdo", "o/r#2"]
        assert service.version == 1
        assert service.loaded_at is not None
        assert service.load_duration is not None
        assert not service.is_loading

    @pytest.mark.asyncio
    async def test_subscribers_receive_each_snapshot(self) -> None:
        """Test subscription queues get every publish."""
        service = TreeService([StaticTreeProvider(tree_of("o/r#1"))])
        queue = service.subscribe()

        await service.invalidate()
        await service.invalidate()

        assert [queue.get_nowait().version for _ in range(2)] == [1, 2]

        service.unsubscribe(queue)
        await service.invalidate()
        assert queue.empty()

    @pytest.mark.asyncio
    async def test_newer_refresh_cancels_and_waits_for_older(self) -> None:
        """Test a superseded load unwinds before the next one starts."""
        provider = BlockingTreeProvider()
        service = TreeService([provider])

        first = asyncio.create_task(service.invalidate())
        await provider.started.wait()
        assert service.is_loading

        second = await service.invalidate()

        assert second is True
        assert await first is False
        assert provider.events == ["start 1", "unwound 1", "start 2"]
        assert service.version == 1
        assert [root.id for root in service.tree.roots] == ["o/r#2"]

    @pytest.mark.asyncio
    async def test_partial_failure_still_publishes(self) -> None:
        """Test one failing provider does not block the others."""
        service = TreeService(
            [FailingTreeProvider(), StaticTreeProvider(tree_of("o/r#1"))]
        )

        assert await service.invalidate()

        assert [root.id for root in service.tree.roots] == ["o/r#1"]

    @pytest.mark.asyncio
    async def test_all_failures_publish_empty_tree(self) -> None:
        """Test an empty tree is published when every provider fails."""
        service = TreeService([FailingTreeProvider()])

        assert await service.invalidate()

        assert len(service.tree) == 0
        assert service.version == 1

    @pytest.mark.asyncio
    async def test_warm_up(self) -> None:
        """Test the first load can run in the background."""
        service = TreeService([StaticTreeProvider(tree_of("o/r#1"))])

        task = service.warm_up()
        assert await task
        assert service.tree is not None

    @pytest.mark.asyncio
    async def test_development_mode_uses_cache(self, temp_cache_dir: Path) -> None:
        """Test the cached tree is used unless forced."""
        storage = TreeStorage(temp_cache_dir)
        storage.save_tree(tree_of("o/r#9"))
        provider = StaticTreeProvider(tree_of("o/r#1"))
        service = TreeService([provider], storage=storage, development=True)

        await service.invalidate()
        assert provider.calls == 0
        assert [root.id for root in service.tree.roots] == ["o/r#9"]

        await service.invalidate(force=True)
        assert provider.calls == 1
        assert [root.id for root in service.tree.roots] == ["o/r#1"]
        assert [root.id for root in storage.load_tree().roots] == ["o/r#1"]

    @pytest.mark.asyncio
    async def test_development_mode_fills_empty_cache(self, temp_cache_dir: Path) -> None:
        """Test a first development load saves what it fetched."""
        storage = TreeStorage(temp_cache_dir)
        service = TreeService(
            [StaticTreeProvider(tree_of("o/r#1"))], storage=storage, development=True
        )

        await service.invalidate()

        assert storage.exists()


class TestLoadTreeJob:
    """Test LoadTreeJob."""

    @pytest.mark.asyncio
    async def test_cancelled_before_start(self) -> None:
        """Test a job cancelled before running never calls its loader."""
        calls = []

        async def loader() -> Tree:
            calls.append(1)
            return Tree.empty()

        job = LoadTreeJob(loader)
        job.cancel()

        assert await job.run() is None
        assert calls == []

    @pytest.mark.asyncio
    async def test_run_records_duration(self) -> None:
        """Test a completed job returns its tree and timing."""

        async def loader() -> Tree:
            return tree_of("o/r#1")

        job = LoadTreeJob(loader)
        tree = await job.run()

        assert len(tree) == 1
        assert job.started_at is not None
        assert job.duration is not None


class TestCreateTreeService:
    """Test create_tree_service."""

    @patch.dict(
        os.environ,
        {
            "GITHUB_TOKEN": "token",
            "THEMES_REPOS": "dotnet/runtime",
            "AZURE_DEVOPS_URL": "https://dev.azure.com/org",
            "AZURE_DEVOPS_QUERY_ID": "q-1",
            "THEMES_DEVELOPMENT": "true",
        },
        clear=True,
    )
    def test_all_sources_configured(self) -> None:
        """Test both providers are created from the environment."""
        with patch("themes_tree.service.GitHubClient"):
            service = create_tree_service(ThemesConfig())

        assert [type(p) for p in service.providers] == [
            GitHubTreeProvider,
            AzureDevOpsTreeProvider,
        ]
        assert service.development

    @patch.dict(os.environ, {}, clear=True)
    def test_nothing_configured(self) -> None:
        """Test no providers without configuration."""
        service = create_tree_service()

        assert service.providers == []
        assert not service.development
