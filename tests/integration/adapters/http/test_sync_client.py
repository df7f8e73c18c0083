"""Live channel plus HTTP refetch, end to end against a local forum server."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import pytest

from resync.bootstrap import build_websocket_client
from resync.interfaces.query_cache import CacheEntry, CacheStatus, QueryKey

from .conftest import frame

# pylint: disable=magic-value-comparison

KEY = QueryKey("/api/communities")


async def wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> None:
    """Poll *predicate* until it holds or *timeout* seconds have passed."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


@pytest.mark.asyncio
async def test_created_event_converges_to_server_view(forum_server, api_url, live_url):
    """A pushed entityCreated ends with the key fresh and equal to the API listing."""
    forum_server.app["communities"].insert(0, {"id": 3, "name": "go"})
    forum_server.app["script"]["frames"].append(
        frame("entityCreated", {"id": 3, "name": "go"})
    )
    seen: list[CacheEntry] = []

    client = build_websocket_client(live_url, ["/api/communities"], api_url=api_url)
    async with client:
        client.store.subscribe(KEY, seen.append)

        def converged() -> bool:
            entry = client.store.get(KEY)
            return (
                entry is not None
                and entry.status is CacheStatus.FRESH
                and any(item["id"] == 3 for item in entry.data)
            )

        await wait_until(converged)
        await client.store.settle()
        entry = client.store.get(KEY)

    assert entry.data == forum_server.app["communities"]
    assert all(e.key == KEY for e in seen)
    assert client.channel.closed
    assert client.store.closed
