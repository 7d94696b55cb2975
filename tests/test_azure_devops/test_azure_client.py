"""Tests for Azure DevOps client."""

import json

import httpx
import pytest

from themes_tree.azure_devops.client import AzureDevOpsClient, batched


def work_item(item_id: int) -> dict[str, object]:
    return {"id": item_id, "fields": {"System.Title": f"Item {item_id}"}}


def test_batched() -> None:
    """Test splitting into fixed-size batches."""
    assert list(batched(range(5), 2)) == [[0, 1], [2, 3], [4]]
    assert list(batched([], 2)) == []


class TestAzureDevOpsClient:
    """Test AzureDevOpsClient against a mock transport."""

    @pytest.mark.asyncio
    async def test_fetch_work_item_tree(self) -> None:
        """Test running a query and fetching the referenced items."""
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            if request.url.path.endswith("/_apis/wit/wiql/q-1"):
                return httpx.Response(
                    200,
                    json={
                        "workItemRelations": [
                            {"rel": None, "source": None, "target": {"id": 1}},
                            {
                                "rel": "System.LinkTypes.Hierarchy-Forward",
                                "source": {"id": 1},
                                "target": {"id": 2},
                            },
                        ]
                    },
                )
            ids = [int(i) for i in request.url.params["ids"].split(",")]
            return httpx.Response(200, json={"value": [work_item(i) for i in ids]})

        async with AzureDevOpsClient(
            "https://dev.azure.com/org/project/",
            "pat",
            transport=httpx.MockTransport(handler),
        ) as client:
            items, relations = await client.fetch_work_item_tree("q-1")

        assert [item.id for item in items] == [1, 2]
        assert [r.is_hierarchy for r in relations] == [False, True]

        query_request, items_request = requests
        assert str(query_request.url).startswith(
            "https://dev.azure.com/org/project/_apis/wit/wiql/q-1"
        )
        assert query_request.url.params["api-version"] == "7.0"
        assert items_request.url.params["$expand"] == "all"
        assert items_request.headers["Authorization"].startswith("Basic ")

    @pytest.mark.asyncio
    async def test_get_work_items_batches(self) -> None:
        """Test ids are deduplicated and requested in batches of 200."""
        batches: list[list[int]] = []

        def handler(request: httpx.Request) -> httpx.Response:
            ids = [int(i) for i in request.url.params["ids"].split(",")]
            batches.append(ids)
            return httpx.Response(200, json={"value": [work_item(i) for i in ids]})

        async with AzureDevOpsClient(
            "https://dev.azure.com/org", "pat", transport=httpx.MockTransport(handler)
        ) as client:
            items = await client.get_work_items(list(range(450, 0, -1)) + [1, 2])

        assert [len(batch) for batch in batches] == [200, 200, 50]
        assert batches[0][0] == 1
        assert len(items) == 450

    @pytest.mark.asyncio
    async def test_http_errors_propagate(self) -> None:
        """Test non-success responses raise."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, content=json.dumps({"message": "no"}))

        async with AzureDevOpsClient(
            "https://dev.azure.com/org", "pat", transport=httpx.MockTransport(handler)
        ) as client:
            with pytest.raises(httpx.HTTPStatusError):
                await client.query_relations("q-1")
