"""Live transport interfaces for RESYNC.

A transport is one bidirectional, message-oriented connection to the server
(WebSocket, in-process queue, ...). It only moves named frames; routing frames
to handlers by event type is the job of the channel manager layered on top.

Contract overview
-----------------
- `open()` establishes the connection; it may be called again after the
  connection dropped or was closed.
- `receive()` yields ``(event_type, payload)`` frames in arrival order. It ends
  normally when the peer closes the connection and raises `TransportError`
  when the connection fails.
- `send()` writes one frame; raises `TransportError` when not connected.
- `close()` releases the underlying resource. It is idempotent and must not
  raise for an already-closed transport.
"""

import abc
from collections.abc import AsyncIterator
from typing import Any

# --- Exceptions ---


class TransportError(Exception):
    """The live connection failed or is unavailable."""


class ChannelClosedError(TransportError):
    """The channel was closed explicitly and cannot be used any more."""


# --- Transport Interface ---


class Transport(abc.ABC):
    """An abstract base class for a bidirectional streaming transport."""

    @abc.abstractmethod
    async def open(self) -> None:
        """Establish the connection.

        Raises:
            TransportError: If the connection cannot be established.
        """

    @abc.abstractmethod
    def receive(self) -> AsyncIterator[tuple[str, Any]]:
        """Iterate over inbound ``(event_type, payload)`` frames.

        Raises:
            TransportError: If the connection fails while reading.
        """

    @abc.abstractmethod
    async def send(self, event_type: str, payload: Any) -> None:
        """Send one named frame to the peer.

        Raises:
            TransportError: If the transport is not connected or the write fails.
        """

    @abc.abstractmethod
    async def close(self) -> None:
        """Release the connection. Idempotent."""

    @property
    def description(self) -> str:
        """Human-readable target description used in log messages."""
        return type(self).__name__
