"""Integration tests for AiohttpWebSocketTransport against a local server."""

import pytest

from resync.adapters.transport.aiohttp_ws import AiohttpWebSocketTransport
from resync.interfaces.transport import TransportError

from .conftest import frame

# pylint: disable=magic-value-comparison


@pytest.mark.asyncio
async def test_receives_frames_and_skips_malformed_ones(forum_server, live_url):
    """Well-formed frames arrive in order; a clean server close ends the stream."""
    script = forum_server.app["script"]
    script["frames"].extend(
        [
            frame("entityCreated", {"id": 3}),
            "this is not json",
            frame("entityUpdated", {"id": 3, "name": "go"}),
        ]
    )
    script["close"] = True
    transport = AiohttpWebSocketTransport(live_url, heartbeat=None)

    await transport.open()
    try:
        received = [item async for item in transport.receive()]
    finally:
        await transport.close()

    assert received == [
        ("entityCreated", {"id": 3}),
        ("entityUpdated", {"id": 3, "name": "go"}),
    ]


@pytest.mark.asyncio
async def test_send_round_trips_through_echo(live_url):
    """Frames written with send() are JSON text the server can echo back."""
    transport = AiohttpWebSocketTransport(live_url, heartbeat=None)
    await transport.open()
    try:
        await transport.send("ping", {"n": 1})
        frames = transport.receive()
        echoed = await anext(frames)
        await frames.aclose()
    finally:
        await transport.close()

    assert echoed == ("ping", {"n": 1})


@pytest.mark.asyncio
async def test_open_fails_for_unreachable_endpoint():
    """A refused handshake is a TransportError."""
    transport = AiohttpWebSocketTransport("ws://127.0.0.1:9/live", connect_timeout=2)
    try:
        with pytest.raises(TransportError, match="cannot connect"):
            await transport.open()
    finally:
        await transport.close()
