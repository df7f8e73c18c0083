"""In-memory implementation of the `Transport` port.

Frames are exchanged through an `asyncio.Queue`. The test-facing methods
(`push`, `drop`, `hang_up`, `fail_next_opens`) let a caller play the server:
deliver events, break the connection, end it cleanly, or refuse the next
connection attempts.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Any

from resync.interfaces.transport import Transport, TransportError


class _Hangup:
    """Queue marker: the peer closed the connection cleanly."""


class _Drop:
    """Queue marker: the connection failed."""

    def __init__(self, error: TransportError) -> None:
        self.error = error


class InMemoryTransport(Transport):
    """Queue-backed transport, used in tests and for in-process wiring.

    Attributes:
        sent: Frames passed to `send`, in order.
        opens: Number of successful `open` calls.
        open_attempts: Number of `open` calls, failed ones included.
        closes: Number of `close` calls.
    """

    def __init__(self, name: str = "memory") -> None:
        self._name = name
        self._inbox: asyncio.Queue[Any] = asyncio.Queue()
        self._connected = False
        self._refusals = 0
        self.sent: list[tuple[str, Any]] = []
        self.opens = 0
        self.open_attempts = 0
        self.closes = 0

    @property
    def description(self) -> str:
        return f"memory://{self._name}"

    @property
    def connected(self) -> bool:
        """True between a successful `open` and the next drop/close."""
        return self._connected

    # --- server side ---

    def push(self, event_type: str, payload: Any) -> None:
        """Queue one inbound frame."""
        self._inbox.put_nowait((event_type, payload))

    def drop(self, error: TransportError | None = None) -> None:
        """Break the connection after the frames already queued."""
        self._inbox.put_nowait(_Drop(error or TransportError("connection reset")))

    def hang_up(self) -> None:
        """End the connection cleanly after the frames already queued."""
        self._inbox.put_nowait(_Hangup())

    def fail_next_opens(self, count: int) -> None:
        """Make the next *count* calls to `open` raise `TransportError`."""
        self._refusals = count

    # --- Transport port ---

    async def open(self) -> None:
        self.open_attempts += 1
        if self._refusals > 0:
            self._refusals -= 1
            raise TransportError(f"{self.description} refused the connection")
        self._connected = True
        self.opens += 1

    async def receive(self) -> AsyncIterator[tuple[str, Any]]:
        if not self._connected:
            raise TransportError(f"{self.description} is not connected")
        while True:
            item = await self._inbox.get()
            if isinstance(item, _Hangup):
                self._connected = False
                return
            if isinstance(item, _Drop):
                self._connected = False
                raise item.error
            yield item

    async def send(self, event_type: str, payload: Any) -> None:
        if not self._connected:
            raise TransportError(f"{self.description} is not connected")
        self.sent.append((event_type, payload))

    async def close(self) -> None:
        self._connected = False
        self.closes += 1
