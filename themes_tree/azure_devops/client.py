"""Azure DevOps Work Item Tracking client using httpx."""

import logging
from collections.abc import Iterable, Iterator
from itertools import islice
from typing import Any

import httpx

from .models import AzureWorkItem, WorkItemRelation

logger = logging.getLogger(__name__)

API_VERSION = "7.0"

# The work items endpoint accepts at most 200 ids per request.
BATCH_SIZE = 200


def batched(values: Iterable[Any], size: int) -> Iterator[list[Any]]:
    """Split ``values`` into lists of at most ``size`` elements."""
    iterator = iter(values)
    while batch := list(islice(iterator, size)):
        yield batch


class AzureDevOpsClient:
    """Async client for running saved queries and fetching work items.

    Use as an async context manager so the underlying connection pool is
    closed.
    """

    def __init__(
        self,
        url: str,
        token: str | None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ):
        """Initialize the client.

        Args:
            url: Organization or project URL, e.g. https://dev.azure.com/org/project
            token: Personal access token (basic auth with an empty user name)
            transport: Custom httpx transport (mainly for tests)
            timeout: Request timeout in seconds
        """
        self.url = url.rstrip("/")
        self._client = httpx.AsyncClient(
            auth=("", token or ""),
            headers={"Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "AzureDevOpsClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        response = await self._client.get(
            f"{self.url}/_apis/wit/{path}",
            params={**params, "api-version": API_VERSION},
        )
        response.raise_for_status()
        return response.json()

    async def query_relations(self, query_id: str) -> list[WorkItemRelation]:
        """Run a saved tree query and return its work item relations."""
        data = await self._get(f"wiql/{query_id}", {})
        relations = [
            WorkItemRelation.from_api(relation)
            for relation in data.get("workItemRelations") or []
        ]
        logger.debug(f"Query {query_id} returned {len(relations)} relation(s)")
        return relations

    async def get_work_items(self, ids: Iterable[int]) -> list[AzureWorkItem]:
        """Fetch work items with all fields and links, in batches."""
        result = []
        for batch in batched(sorted(set(ids)), BATCH_SIZE):
            data = await self._get(
                "workitems",
                {"ids": ",".join(str(i) for i in batch), "$expand": "all"},
            )
            result.extend(AzureWorkItem.from_api(item) for item in data.get("value") or [])
        return result

    async def fetch_work_item_tree(
        self, query_id: str
    ) -> tuple[list[AzureWorkItem], list[WorkItemRelation]]:
        """Run a tree query and fetch every work item it references.

        Returns:
            The work items and the query's relations
        """
        relations = await self.query_relations(query_id)

        ids = set()
        for relation in relations:
            if relation.source_id is not None:
                ids.add(relation.source_id)
            if relation.target_id is not None:
                ids.add(relation.target_id)

        items = await self.get_work_items(ids)
        return items, relations
