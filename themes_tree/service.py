"""Refresh orchestration for the live themes tree.

``TreeService`` owns the single published ``TreeSnapshot``. Readers get the
last published snapshot without waiting. ``invalidate()`` starts a new load;
a load still in flight is cancelled and fully unwound before the new one
starts, so two refreshes never issue requests at the same time.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from .config import ThemesConfig
from .github_client.client import GitHubClient
from .providers.azure_devops import AzureDevOpsTreeProvider
from .providers.base import TreeProvider
from .providers.github import GitHubTreeProvider
from .storage.manager import TreeStorage
from .tree.merge import merge_trees, sort_tree
from .tree.models import Tree

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TreeSnapshot:
    """A published tree with its load time."""

    tree: Tree
    loaded_at: datetime
    load_duration: timedelta | None
    version: int


class LoadTreeJob:
    """One cancellable tree load."""

    def __init__(self, loader: Callable[[], Awaitable[Tree]]):
        self._loader = loader
        self._task: asyncio.Task[Tree] | None = None
        self.cancelled = False
        self.started_at: datetime | None = None
        self.duration: timedelta | None = None

    def cancel(self) -> None:
        self.cancelled = True
        if self._task is not None:
            self._task.cancel()

    async def run(self) -> Tree | None:
        """Run the loader.

        Returns:
            The loaded tree, or None if the job was cancelled
        """
        if self.cancelled:
            return None

        self.started_at = datetime.now(timezone.utc)
        start = time.perf_counter()
        self._task = asyncio.ensure_future(self._loader())

        try:
            tree = await self._task
        except asyncio.CancelledError:
            if not self.cancelled:
                raise
            logger.info("Tree load cancelled by a newer refresh")
            return None
        finally:
            self.duration = timedelta(seconds=time.perf_counter() - start)

        return None if self.cancelled else tree


class TreeService:
    """Loads trees from providers and publishes the latest one."""

    def __init__(
        self,
        providers: Sequence[TreeProvider],
        storage: TreeStorage | None = None,
        development: bool = False,
    ):
        """Initialize the service.

        Args:
            providers: Sources merged into the tree
            storage: Snapshot cache, used in development mode
            development: Load from (and save to) the cache instead of always
                hitting the sources
        """
        self.providers = list(providers)
        self.storage = storage
        self.development = development

        self._snapshot: TreeSnapshot | None = None
        self._current_job: LoadTreeJob | None = None
        self._run_lock = asyncio.Lock()
        self._subscribers: list[asyncio.Queue[TreeSnapshot]] = []
        self._warm_up_task: asyncio.Task[bool] | None = None

    @property
    def snapshot(self) -> TreeSnapshot | None:
        return self._snapshot

    @property
    def tree(self) -> Tree | None:
        """The last published tree (None before the first load completes)."""
        return self._snapshot.tree if self._snapshot else None

    @property
    def loaded_at(self) -> datetime | None:
        return self._snapshot.loaded_at if self._snapshot else None

    @property
    def load_duration(self) -> timedelta | None:
        return self._snapshot.load_duration if self._snapshot else None

    @property
    def version(self) -> int:
        """Incremented on every publish; 0 before the first one."""
        return self._snapshot.version if self._snapshot else 0

    @property
    def is_loading(self) -> bool:
        return self._current_job is not None

    def subscribe(self) -> "asyncio.Queue[TreeSnapshot]":
        """Get a queue receiving every snapshot published from now on."""
        queue: asyncio.Queue[TreeSnapshot] = asyncio.Queue()
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: "asyncio.Queue[TreeSnapshot]") -> None:
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    async def invalidate(self, force: bool = False) -> bool:
        """Reload the tree, superseding any load in flight.

        Args:
            force: In development mode, ignore the cached snapshot

        Returns:
            True if a new snapshot was published, False if this load was
            cancelled by a newer one
        """
        job = LoadTreeJob(lambda: self._load_tree(force))

        old_job, self._current_job = self._current_job, job
        if old_job is not None:
            old_job.cancel()

        try:
            # Held for the whole load: the next job waits until this one unwound.
            async with self._run_lock:
                tree = await job.run()
                if tree is None:
                    return False
                self._publish(tree, job)
                return True
        finally:
            if self._current_job is job:
                self._current_job = None

    def warm_up(self) -> "asyncio.Task[bool]":
        """Start the first load in the background without waiting for it."""
        self._warm_up_task = asyncio.create_task(self.invalidate())
        return self._warm_up_task

    def _publish(self, tree: Tree, job: LoadTreeJob) -> None:
        snapshot = TreeSnapshot(
            tree=tree,
            loaded_at=job.started_at or datetime.now(timezone.utc),
            load_duration=job.duration,
            version=self.version + 1,
        )
        self._snapshot = snapshot

        logger.info(
            f"Published tree v{snapshot.version}: {len(tree)} node(s), "
            f"{len(tree.roots)} root(s)"
        )

        for queue in list(self._subscribers):
            queue.put_nowait(snapshot)

    async def _load_tree(self, force: bool) -> Tree:
        if not self.development or self.storage is None:
            return await self._load_from_providers()

        tree = None if force else await asyncio.to_thread(self.storage.load_tree)
        if tree is None:
            tree = await self._load_from_providers()
        else:
            logger.info(f"Loaded cached tree from {self.storage.file_path}")

        await asyncio.to_thread(self.storage.save_tree, tree)
        return tree

    async def _load_from_providers(self) -> Tree:
        results = await asyncio.gather(
            *(self._fetch_provider(provider) for provider in self.providers)
        )

        trees = [tree for tree in results if tree is not None]
        if not trees:
            logger.error("No tree provider succeeded, publishing an empty tree")
            return Tree.empty()

        return sort_tree(merge_trees(*trees))

    async def _fetch_provider(self, provider: TreeProvider) -> Tree | None:
        """Fetch one provider's forest; None if it failed."""
        start = time.perf_counter()
        try:
            tree = await provider.fetch_forest()
        except Exception as e:
            logger.error(
                f"Loading {provider.name} tree failed after "
                f"{time.perf_counter() - start:.1f}s: {e}",
                exc_info=True,
            )
            return None

        logger.info(
            f"Loaded {provider.name} tree in {time.perf_counter() - start:.1f}s "
            f"({len(tree)} node(s))"
        )
        return tree


def create_tree_service(config: ThemesConfig | None = None) -> TreeService:
    """Create a TreeService with the providers the configuration enables."""
    config = config or ThemesConfig()

    providers: list[TreeProvider] = []
    if config.is_github_configured():
        providers.append(
            GitHubTreeProvider(GitHubClient(config.github_token), config.repos)
        )
    if config.is_azure_devops_configured():
        providers.append(
            AzureDevOpsTreeProvider(
                url=config.azure_devops_url,
                token=config.azure_devops_token,
                query_id=config.azure_devops_query_id,
                query_title=config.azure_devops_query_title,
                query_url=config.azure_devops_query_url,
            )
        )

    if not providers:
        logger.warning("No tree provider is configured")

    return TreeService(
        providers,
        storage=TreeStorage(config.cache_dir),
        development=config.development,
    )
