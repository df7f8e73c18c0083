"""Event Channel Manager: one live connection per client session.

The manager owns a single injected `Transport`, routes inbound frames to the
handlers registered for their event type, and re-opens the connection with a
bounded exponential backoff when it drops unexpectedly.

State machine::

    DISCONNECTED -> CONNECTING -> CONNECTED -> DISCONNECTED
                         ^                          |
                         +------ reconnect ---------+

Delivery is isolated: an exception in one handler is reported to the error
handler and the remaining handlers still run. Transport failures are recovered
locally and only reported once the reconnect policy gives up, after which the
manager stays DISCONNECTED and simply delivers no further events.

A connection that ends before delivering a single frame counts as a failed
attempt, so a peer that keeps accepting and hanging up exhausts the policy
like one that refuses outright. After a connection that did deliver events,
the manager waits the initial backoff delay and starts a fresh attempt budget.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from resync.config import ReconnectPolicy
from resync.interfaces.transport import ChannelClosedError, Transport, TransportError

logger = logging.getLogger(__name__)

EventHandler = Callable[[Any], "Awaitable[None] | None"]
ErrorHandler = Callable[[BaseException], None]


class ChannelState(str, Enum):
    """Connection state of an `EventChannelManager`."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class EventChannelManager:
    """Typed event subscription over one reconnecting transport.

    Args:
        transport: The transport to drive. It is owned by the manager from now
            on and released by `close`.
        reconnect_policy: Backoff used to (re)open the transport.
        error_handler: Receives handler exceptions and exhausted-transport
            errors. Without one, errors are only logged.

    Note:
        Handlers may be plain functions or coroutine functions. Coroutine
        handlers are awaited in order, so a handler may ``await channel.close()``.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        reconnect_policy: ReconnectPolicy | None = None,
        error_handler: ErrorHandler | None = None,
    ) -> None:
        self._transport = transport
        self._policy = reconnect_policy or ReconnectPolicy()
        self._error_handler = error_handler
        self._handlers: dict[str, list[EventHandler]] = {}
        self._state = ChannelState.DISCONNECTED
        self._closed = False
        self._session: asyncio.Task | None = None
        self._connected = asyncio.Event()

    @property
    def state(self) -> ChannelState:
        """The current connection state."""
        return self._state

    @property
    def closed(self) -> bool:
        """True once `close` has been called."""
        return self._closed

    # --------------------------------------------------------------------- #
    # Subscription
    # --------------------------------------------------------------------- #

    def on_event(self, event_type: str, handler: EventHandler) -> Callable[[], None]:
        """Register *handler* for *event_type*.

        Several handlers may share an event type; they are called in
        registration order.

        Returns:
            A callable removing this registration (idempotent).
        """
        handlers = self._handlers.setdefault(event_type, [])
        handlers.append(handler)
        logger.debug(
            "Registered handler %s for %s", _get_handler_name(handler), event_type
        )

        def unregister() -> None:
            registered = self._handlers.get(event_type, [])
            if handler in registered:
                registered.remove(handler)

        return unregister

    def on_error(self, handler: ErrorHandler | None) -> None:
        """Set the single error handler (replacing any previous one)."""
        self._error_handler = handler

    # --------------------------------------------------------------------- #
    # Lifecycle
    # --------------------------------------------------------------------- #

    async def connect(self) -> bool:
        """Start the session and wait for the first connection.

        Returns:
            True once connected; False if the reconnect policy gave up first.

        Raises:
            ChannelClosedError: If the channel was closed.
        """
        if self._closed:
            raise ChannelClosedError("Channel is closed.")
        if self._session is None or self._session.done():
            self._session = asyncio.create_task(
                self._run(), name=f"channel {self._transport.description}"
            )
        if self._connected.is_set():
            return True

        waiter = asyncio.ensure_future(self._connected.wait())
        try:
            await asyncio.wait(
                {waiter, self._session}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            waiter.cancel()
        return waiter.done() and not waiter.cancelled()

    async def send(self, event_type: str, payload: Any) -> None:
        """Send a named frame to the server.

        Raises:
            ChannelClosedError: If the channel was closed.
            TransportError: If the channel is not connected or the write fails.
        """
        if self._closed:
            raise ChannelClosedError("Channel is closed.")
        if self._state is not ChannelState.CONNECTED:
            raise TransportError(f"Channel is {self._state.value}.")
        await self._transport.send(event_type, payload)

    async def close(self) -> None:
        """Close the channel and release the transport.

        Cancels any in-flight reconnect attempt. Safe to call from inside an
        event handler, and idempotent: a second call is a no-op.
        """
        if self._closed:
            return
        self._closed = True
        logger.debug("Closing channel to %s", self._transport.description)

        session = self._session
        if (
            session is not None
            and session is not asyncio.current_task()
            and not session.done()
        ):
            session.cancel()
            await asyncio.gather(session, return_exceptions=True)

        try:
            await self._transport.close()
        except Exception as e:  # pylint: disable=broad-except
            logger.warning("Error while closing %s: %s", self._transport.description, e)
            self._report(e)
        finally:
            self._set_state(ChannelState.DISCONNECTED)

    async def wait_closed(self) -> None:
        """Wait until the session ends: closed, or reconnect attempts exhausted."""
        if self._session is not None:
            await asyncio.wait({self._session})

    async def __aenter__(self) -> EventChannelManager:
        await self.connect()
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    # --------------------------------------------------------------------- #
    # Session loop
    # --------------------------------------------------------------------- #

    async def _run(self) -> None:
        while not self._closed:
            try:
                await self._serve_with_retry()
            except TransportError as e:
                self._set_state(ChannelState.DISCONNECTED)
                logger.error(
                    "Giving up on %s: %s", self._transport.description, e
                )
                self._report(e)
                return

            if self._closed or not self._policy.enabled:
                return
            logger.warning(
                "Connection to %s lost, reconnecting in %ss",
                self._transport.description,
                self._policy.initial_delay,
            )
            await asyncio.sleep(self._policy.initial_delay)

    async def _serve_with_retry(self) -> None:
        """Open the transport and pump it until the connection drops.

        One attempt covers the open and the pump. A connection that drops
        before delivering any frame counts as a failed attempt, so a peer that
        accepts and hangs up straight away spends the attempt budget with the
        policy's backoff in between. Returns normally once a connection that
        delivered at least one frame has dropped.
        """
        policy = self._policy
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(policy.max_attempts if policy.enabled else 1),
            wait=wait_exponential(
                multiplier=policy.initial_delay,
                max=policy.max_delay,
                exp_base=policy.multiplier,
            ),
            retry=retry_if_exception_type(TransportError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                await self._open()
                delivered = await self._pump()
                self._set_state(ChannelState.DISCONNECTED)
                if not delivered and not self._closed and policy.enabled:
                    raise TransportError(
                        f"{self._transport.description} dropped before delivering"
                        " any event"
                    )

    async def _open(self) -> None:
        self._set_state(ChannelState.CONNECTING)
        try:
            await self._transport.open()
        except TransportError:
            raise
        except Exception as e:  # pylint: disable=broad-except
            raise TransportError(str(e) or type(e).__name__) from e
        self._set_state(ChannelState.CONNECTED)

    async def _pump(self) -> int:
        """Deliver inbound frames until the connection ends; return how many."""
        delivered = 0
        try:
            async for event_type, payload in self._transport.receive():
                if self._closed:
                    break
                delivered += 1
                await self._deliver(event_type, payload)
                if self._closed:
                    break
        except TransportError as e:
            logger.warning("Transport error on %s: %s", self._transport.description, e)
        except Exception:  # pylint: disable=broad-except
            logger.exception(
                "Unexpected error reading from %s", self._transport.description
            )
        return delivered

    async def _deliver(self, event_type: str, payload: Any) -> None:
        handlers = list(self._handlers.get(event_type, ()))
        if not handlers:
            logger.debug("No handler registered for event %s", event_type)
            return
        for handler in handlers:
            if self._closed:
                return
            handler_name = _get_handler_name(handler)
            logger.debug("Delivering %s to handler %s", event_type, handler_name)
            try:
                result = handler(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:  # pylint: disable=broad-except
                logger.exception(
                    "Exception handling event %s with handler %s",
                    event_type,
                    handler_name,
                )
                self._report(e)

    # --------------------------------------------------------------------- #
    # Helpers
    # --------------------------------------------------------------------- #

    def _set_state(self, state: ChannelState) -> None:
        if state is self._state:
            return
        logger.debug("Channel %s -> %s", self._state.value, state.value)
        self._state = state
        if state is ChannelState.CONNECTED:
            self._connected.set()
        else:
            self._connected.clear()

    def _report(self, error: BaseException) -> None:
        if self._error_handler is None:
            return
        try:
            self._error_handler(error)
        except Exception:  # pylint: disable=broad-except
            logger.exception("Channel error handler raised")


def _get_handler_name(fn: Callable[..., Any]) -> str:
    if hasattr(fn, "__name__"):
        return fn.__name__
    if hasattr(fn, "func") and hasattr(fn.func, "__name__"):
        return fn.func.__name__
    return repr(fn)
