"""Local aiohttp servers standing in for the forum API and its live channel."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

# pylint: disable=redefined-outer-name

COMMUNITIES = [{"id": 2, "name": "rust"}, {"id": 1, "name": "python"}]


async def list_communities(request: web.Request) -> web.Response:
    """GET /api/communities."""
    request.app["hits"].append(str(request.rel_url))
    return web.json_response(request.app["communities"])


async def get_community(request: web.Request) -> web.Response:
    """GET /api/communities/{id}."""
    request.app["hits"].append(str(request.rel_url))
    community_id = int(request.match_info["id"])
    for community in request.app["communities"]:
        if community["id"] == community_id:
            return web.json_response({**community, "tab": request.query.get("tab")})
    raise web.HTTPNotFound()


async def not_json(request: web.Request) -> web.Response:
    """GET /api/garbage: a body that is not JSON."""
    return web.Response(text="<html>maintenance</html>")


async def live(request: web.Request) -> web.WebSocketResponse:
    """WebSocket endpoint: replays the scripted frames, then echoes until closed."""
    ws = web.WebSocketResponse()
    await ws.prepare(request)
    script = request.app["script"]
    for frame in script["frames"]:
        await ws.send_str(frame)
    if script["close"]:
        await ws.close()
        return ws
    async for message in ws:
        await ws.send_str(message.data)
    return ws


def make_app() -> web.Application:
    """Application with the API routes and the live endpoint."""
    app = web.Application()
    app["hits"] = []
    app["communities"] = [dict(c) for c in COMMUNITIES]
    app["script"] = {"frames": [], "close": False}
    app.router.add_get("/api/communities", list_communities)
    app.router.add_get("/api/communities/{id}", get_community)
    app.router.add_get("/api/garbage", not_json)
    app.router.add_get("/live", live)
    return app


def frame(event_type: str, payload) -> str:
    """JSON text of one live frame."""
    return json.dumps({"event": event_type, "data": payload})


@pytest_asyncio.fixture
async def forum_server() -> AsyncIterator[TestServer]:
    """A running forum server on a free local port."""
    server = TestServer(make_app())
    await server.start_server()
    try:
        yield server
    finally:
        await server.close()


@pytest.fixture
def api_url(forum_server: TestServer) -> str:
    """Base HTTP URL of the forum server."""
    return str(forum_server.make_url("/")).rstrip("/")


@pytest.fixture
def live_url(forum_server: TestServer) -> str:
    """WebSocket URL of the live endpoint."""
    return str(forum_server.make_url("/live")).replace("http://", "ws://", 1)
