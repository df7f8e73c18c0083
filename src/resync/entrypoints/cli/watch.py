"""``resync watch``: follow a live channel and print cache transitions.

Connects to a WebSocket endpoint emitting ``entityCreated``/``entityUpdated``
frames, merges every event into the watched query keys, and prints each
committed cache entry as one JSON document per line on stdout::

    {"key": "/api/communities", "status": "stale", "data": [{"id": 2}]}

With ``--api-url``, invalidated keys are refetched from the HTTP API so the
printed entries converge to the server's view. Runs until interrupted or until
the reconnect policy gives up.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING

import click
import click_extra as clickx

from resync.bootstrap import build_websocket_client

from .helpers import error, success, warn

if TYPE_CHECKING:
    from resync.interfaces.query_cache import CacheEntry
    from resync.interfaces.redactor import Redactor

logger = logging.getLogger(__name__)


def render_entry(entry: CacheEntry | None) -> str:
    """Render a committed entry as a single JSON line."""
    if entry is None:
        return json.dumps({"key": None, "status": "evicted", "data": None})
    document = {
        "key": str(entry.key),
        "status": entry.status.value,
        "data": entry.data,
    }
    if entry.error is not None:
        document["error"] = entry.error.reason
    return json.dumps(document, default=str)


async def _watch(
    ws_url: str, key_paths: tuple[str, ...], api_url: str | None, redactor: Redactor
) -> bool:
    client = build_websocket_client(
        ws_url,
        key_paths,
        api_url=api_url,
        error_handler=lambda e: logger.debug("Channel error: %s", e),
    )
    try:
        for key in client.synchronizer.affected_keys.static_keys():
            client.store.subscribe(key, lambda entry: click.echo(render_entry(entry)))
        if not await client.start():
            error(f"Cannot connect to {redactor.sanitize(ws_url)}")
            return False
        success(f"Watching {len(key_paths)} key(s) on {redactor.sanitize(ws_url)}")
        await client.channel.wait_closed()
        warn("Channel closed")
        return True
    finally:
        await client.aclose()


@click.command()
@click.argument("ws_url", metavar="WS_URL")
@click.option(
    "--key",
    "-k",
    "key_paths",
    multiple=True,
    required=True,
    metavar="PATH",
    help="Query key path to keep in sync (e.g. /api/communities). Repeatable.",
)
@click.option(
    "--api-url",
    default=None,
    metavar="URL",
    help="Base URL of the HTTP API used to refetch invalidated keys.",
)
@clickx.pass_context
def watch(
    ctx: click.Context, ws_url: str, key_paths: tuple[str, ...], api_url: str | None
) -> None:
    """Follow a live event channel and print cache transitions as JSON."""
    redactor = ctx.find_root().obj["redactor"]
    try:
        connected = asyncio.run(_watch(ws_url, key_paths, api_url, redactor))
    except KeyboardInterrupt:
        warn("Interrupted")
        return
    if not connected:
        ctx.exit(1)
