"""WebSocket implementation of the `Transport` port, built on aiohttp.

Wire format: one JSON text message per frame::

    {"event": "entityCreated", "data": {"id": 2, "name": "rust"}}

Frames that are not valid JSON objects with a string ``event`` are logged and
skipped; one malformed message does not tear down the connection.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Mapping
from typing import Any

import aiohttp

from resync.interfaces.transport import Transport, TransportError

logger = logging.getLogger(__name__)

EVENT_FIELD = "event"
DATA_FIELD = "data"


class FrameDecodeError(ValueError):
    """Raised when a text message is not a well-formed event frame."""


def encode_frame(event_type: str, payload: Any) -> str:
    """Serialize one frame to its JSON text form."""
    return json.dumps({EVENT_FIELD: event_type, DATA_FIELD: payload})


def decode_frame(raw: str) -> tuple[str, Any]:
    """Parse a JSON text message into ``(event_type, payload)``.

    Raises:
        FrameDecodeError: If *raw* is not a JSON object with a string ``event``.
    """
    try:
        frame = json.loads(raw)
    except json.JSONDecodeError as e:
        raise FrameDecodeError(f"not JSON: {e}") from e
    if not isinstance(frame, Mapping):
        raise FrameDecodeError("frame is not an object")
    event_type = frame.get(EVENT_FIELD)
    if not isinstance(event_type, str) or not event_type:
        raise FrameDecodeError(f"missing {EVENT_FIELD!r} field")
    return event_type, frame.get(DATA_FIELD)


class AiohttpWebSocketTransport(Transport):
    """One WebSocket connection per `open`.

    Args:
        url: ``ws://`` or ``wss://`` endpoint.
        session: Optional shared `aiohttp.ClientSession`. When omitted, the
            transport creates one on first `open` and closes it in `close`.
        headers: Extra handshake headers (e.g. authorization).
        heartbeat: Ping interval in seconds; None disables pings.
        connect_timeout: Seconds allowed for the handshake.
    """

    def __init__(
        self,
        url: str,
        *,
        session: aiohttp.ClientSession | None = None,
        headers: Mapping[str, str] | None = None,
        heartbeat: float | None = 30.0,
        connect_timeout: float = 10.0,
    ) -> None:
        self._url = url
        self._session = session
        self._owns_session = session is None
        self._headers = dict(headers or {})
        self._heartbeat = heartbeat
        self._connect_timeout = connect_timeout
        self._ws: aiohttp.ClientWebSocketResponse | None = None

    @property
    def description(self) -> str:
        return self._url

    async def open(self) -> None:
        await self._release_socket()
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        try:
            self._ws = await asyncio.wait_for(
                self._session.ws_connect(
                    self._url, headers=self._headers, heartbeat=self._heartbeat
                ),
                timeout=self._connect_timeout,
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"cannot connect to {self._url}: {e}") from e
        logger.debug("WebSocket connected to %s", self._url)

    async def receive(self) -> AsyncIterator[tuple[str, Any]]:
        ws = self._ws
        if ws is None or ws.closed:
            raise TransportError(f"{self._url} is not connected")

        async for message in ws:
            if message.type == aiohttp.WSMsgType.TEXT:
                try:
                    yield decode_frame(message.data)
                except FrameDecodeError as e:
                    logger.warning("Skipping malformed frame from %s: %s", self._url, e)
            elif message.type == aiohttp.WSMsgType.ERROR:
                raise TransportError(f"{self._url}: {ws.exception()}")

        if ws.close_code not in (None, aiohttp.WSCloseCode.OK):
            raise TransportError(f"{self._url} closed with code {ws.close_code}")

    async def send(self, event_type: str, payload: Any) -> None:
        ws = self._ws
        if ws is None or ws.closed:
            raise TransportError(f"{self._url} is not connected")
        try:
            await ws.send_str(encode_frame(event_type, payload))
        except (aiohttp.ClientError, ConnectionResetError) as e:
            raise TransportError(f"cannot send to {self._url}: {e}") from e

    async def close(self) -> None:
        await self._release_socket()
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def _release_socket(self) -> None:
        ws, self._ws = self._ws, None
        if ws is not None and not ws.closed:
            await ws.close()
