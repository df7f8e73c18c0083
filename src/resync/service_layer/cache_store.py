"""Query Cache Store: the keyed store of query results.

The store is the only shared mutable resource of the synchronization layer.
Everything else reads immutable `CacheEntry` snapshots and writes through
`set` / `invalidate`.

Transitions are serialized: while one transition is being applied (updater
running, subscribers being notified), any further `set` is appended to a
queue and applied once the current transition has committed. This keeps
subscriber callbacks free to write back into the store without unbounded
recursion.

Refetches triggered by invalidation run as asyncio tasks. Each refetch moves
the entry ``stale -> pending -> fresh`` on success; on failure (after the
bounded retries of the `RefetchPolicy`) the entry goes back to ``stale``,
keeps its last data and carries the `FetchFailure` in ``error``. A cancelled
refetch restores ``stale`` too, so no entry is ever left ``pending``.
Invalidating a key nobody observes cancels its in-flight refetch, so a
snapshot taken before the invalidation is never committed as ``fresh``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from collections.abc import Callable, Iterable
from functools import partial
from typing import Any

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from resync.config import RefetchPolicy
from resync.interfaces.query_cache import (
    CacheEntry,
    CacheStatus,
    Fetcher,
    FetchFailure,
    QueryCache,
    QueryKey,
    Subscriber,
    Unsubscribe,
    Updater,
    data_updater,
)

logger = logging.getLogger(__name__)


class StoreClosedError(RuntimeError):
    """Raised when a closed store is used."""


class QueryCacheStore(QueryCache):
    """In-process query cache with subscriptions and invalidation-driven refetch.

    Args:
        fetcher: The refetch collaborator, ``async fetch(key) -> data``. Without
            one, invalidation only marks entries stale.
        refetch_policy: Timeout and bounded retries for each refetch.
        refetch_on_subscribe: Refetch absent or stale entries when the first
            (or any further) subscriber arrives while an event loop is running.

    Note:
        Create one store per client session and close it explicitly (or use it
        as an async context manager). There is no module-level instance.
    """

    def __init__(
        self,
        fetcher: Fetcher | None = None,
        *,
        refetch_policy: RefetchPolicy | None = None,
        refetch_on_subscribe: bool = True,
    ) -> None:
        self._fetcher = fetcher
        self._policy = refetch_policy or RefetchPolicy()
        self._refetch_on_subscribe = refetch_on_subscribe
        self._entries: dict[QueryKey, CacheEntry] = {}
        self._subscribers: dict[QueryKey, list[Subscriber]] = {}
        self._queued: deque[tuple[QueryKey, Updater]] = deque()
        self._applying = False
        self._refetches: dict[QueryKey, asyncio.Task] = {}
        self._closed = False

    # --------------------------------------------------------------------- #
    # Interface implementation
    # --------------------------------------------------------------------- #

    def get(self, key: QueryKey) -> CacheEntry | None:
        return self._entries.get(key)

    def set(self, key: QueryKey, updater: Updater) -> CacheEntry | None:
        self._ensure_open()
        if self._applying:
            self._queued.append((key, updater))
            logger.debug("Queued re-entrant update for %s", key)
            return None

        self._applying = True
        try:
            committed = self._apply(key, updater)
            self._drain()
        finally:
            self._applying = False
        return committed

    def invalidate(
        self, keys: Iterable[QueryKey], *, exact: bool = False
    ) -> list[asyncio.Task]:
        self._ensure_open()
        patterns = list(keys)
        known = dict.fromkeys([*self._entries, *self._subscribers])
        matched = [
            key
            for key in known
            if any(
                pattern == key if exact else pattern.is_prefix_of(key)
                for pattern in patterns
            )
        ]
        tasks: list[asyncio.Task] = []
        for key in matched:
            if key in self._entries:
                self.set(key, _mark_stale)
            if self.subscriber_count(key) and self._fetcher is not None:
                if (task := self._schedule_refetch(key)) is not None:
                    tasks.append(task)
            elif self._refetch_in_flight(key):
                # its snapshot predates the invalidation and must not commit
                logger.debug("Cancelling unobserved refetch of %s", key)
                self._refetches[key].cancel()
        logger.debug(
            "Invalidated %d key(s), scheduled %d refetch(es)", len(matched), len(tasks)
        )
        return tasks

    def subscribe(self, key: QueryKey, callback: Subscriber) -> Unsubscribe:
        self._ensure_open()
        callbacks = self._subscribers.setdefault(key, [])
        callbacks.append(callback)

        entry = self._entries.get(key)
        if (
            self._refetch_on_subscribe
            and self._fetcher is not None
            and (entry is None or entry.status is CacheStatus.STALE)
            and not self._refetch_in_flight(key)
        ):
            self._schedule_refetch(key)

        active = True

        def unsubscribe() -> None:
            nonlocal active
            if not active:
                return
            active = False
            remaining = self._subscribers.get(key, [])
            if callback in remaining:
                remaining.remove(callback)
            if not remaining:
                self._subscribers.pop(key, None)

        return unsubscribe

    # --------------------------------------------------------------------- #
    # Extras
    # --------------------------------------------------------------------- #

    def set_data(self, key: QueryKey, fn: Callable[[Any], Any]) -> CacheEntry | None:
        """Update only the data of *key* with ``fn(old_data)``.

        An existing entry keeps its status; a new entry is created ``stale``
        because its data has not been confirmed by a fetch. Returning the very
        same data object from *fn* is a no-op (no transition is committed).
        """
        return self.set(key, data_updater(key, fn))

    def keys(self) -> list[QueryKey]:
        """Return the keys that currently have an entry."""
        return list(self._entries)

    def subscriber_count(self, key: QueryKey) -> int:
        """Return the number of active subscriptions for *key*."""
        return len(self._subscribers.get(key, ()))

    async def refetch(self, key: QueryKey) -> CacheEntry | None:
        """Fetch *key* from the source of truth and commit the outcome.

        Returns:
            The committed entry (``fresh`` on success, ``stale`` with ``error``
            set on failure), or None if the store was closed meanwhile.

        Raises:
            RuntimeError: If the store has no fetcher.
            asyncio.CancelledError: If cancelled; the entry is restored to
                ``stale`` first.
        """
        if self._fetcher is None:
            raise RuntimeError("QueryCacheStore has no fetcher configured.")
        self._ensure_open()
        owner = asyncio.current_task()
        self.set(key, partial(_mark_pending, key))
        try:
            data = await self._fetch_with_retry(key)
        except asyncio.CancelledError:
            if not self._closed and self._refetches.get(key) in (None, owner):
                self.set(key, _restore_stale)
            raise
        except FetchFailure as failure:
            if self._closed:
                return None
            logger.warning("Refetch of %s failed, keeping last data: %s", key, failure)
            self.set(key, partial(_record_failure, key, failure))
        else:
            if self._closed:
                return None
            logger.debug("Refetch of %s succeeded", key)
            self.set(
                key, lambda _old: CacheEntry(key, data=data, status=CacheStatus.FRESH)
            )
        return self._entries.get(key)

    async def settle(self) -> None:
        """Wait until no refetch is in flight (including ones started meanwhile)."""
        while pending := [t for t in self._refetches.values() if not t.done()]:
            await asyncio.gather(*pending, return_exceptions=True)

    async def close(self) -> None:
        """Tear the store down: cancel refetches, drop subscribers and entries.

        Idempotent.
        """
        if self._closed:
            return
        tasks = list(self._refetches.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._closed = True
        self._refetches.clear()
        self._subscribers.clear()
        self._entries.clear()
        self._queued.clear()
        logger.debug("Query cache store closed")

    @property
    def closed(self) -> bool:
        """True once `close` has completed."""
        return self._closed

    async def __aenter__(self) -> QueryCacheStore:
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    # --------------------------------------------------------------------- #
    # Internals
    # --------------------------------------------------------------------- #

    def _ensure_open(self) -> None:
        if self._closed:
            raise StoreClosedError("QueryCacheStore is closed.")

    def _apply(self, key: QueryKey, updater: Updater) -> CacheEntry | None:
        old = self._entries.get(key)
        new = updater(old)
        if new is old:
            return old
        if not isinstance(new, CacheEntry):
            raise TypeError(
                f"Updater for {key} returned {type(new).__name__}, expected CacheEntry"
            )
        if new.key != key:
            raise ValueError(f"Updater for {key} returned an entry for {new.key}")
        new = new.evolve(updated_at=time.time())
        self._entries[key] = new
        logger.debug("Committed %s (%s)", key, new.status.value)
        self._notify(new)
        return new

    def _drain(self) -> None:
        while self._queued:
            key, updater = self._queued.popleft()
            try:
                self._apply(key, updater)
            except Exception:  # pylint: disable=broad-except
                logger.exception("Dropped queued update for %s", key)

    def _notify(self, entry: CacheEntry) -> None:
        for callback in list(self._subscribers.get(entry.key, ())):
            try:
                callback(entry)
            except Exception:  # pylint: disable=broad-except
                logger.exception("Subscriber for %s raised", entry.key)

    def _refetch_in_flight(self, key: QueryKey) -> bool:
        task = self._refetches.get(key)
        return task is not None and not task.done()

    def _schedule_refetch(self, key: QueryKey) -> asyncio.Task | None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, refetch of %s deferred", key)
            return None

        if (previous := self._refetches.get(key)) is not None and not previous.done():
            logger.debug("Superseding in-flight refetch of %s", key)
            previous.cancel()

        task = loop.create_task(self.refetch(key), name=f"refetch {key}")
        self._refetches[key] = task
        task.add_done_callback(partial(self._forget_refetch, key))
        return task

    def _forget_refetch(self, key: QueryKey, task: asyncio.Task) -> None:
        if self._refetches.get(key) is task:
            del self._refetches[key]
        if not task.cancelled() and (exc := task.exception()) is not None:
            logger.error("Refetch task for %s crashed: %r", key, exc)

    async def _fetch_with_retry(self, key: QueryKey) -> Any:
        policy = self._policy
        data: Any = None
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(policy.attempts),
            wait=wait_exponential(
                multiplier=policy.initial_delay, max=policy.max_delay
            ),
            retry=retry_if_exception_type(FetchFailure),
            before_sleep=before_sleep_log(logger, logging.DEBUG),
            reraise=True,
        ):
            with attempt:
                data = await self._fetch_once(key)
        return data

    async def _fetch_once(self, key: QueryKey) -> Any:
        assert self._fetcher is not None
        timeout = self._policy.timeout
        try:
            return await asyncio.wait_for(self._fetcher(key), timeout=timeout)
        except FetchFailure:
            raise
        except asyncio.TimeoutError as e:
            raise FetchFailure(key, f"timed out after {timeout}s") from e
        except Exception as e:  # pylint: disable=broad-except
            raise FetchFailure(key, str(e) or type(e).__name__) from e


# --- Pure updaters ---


def _mark_stale(old: CacheEntry | None) -> CacheEntry | None:
    if old is None or old.status is CacheStatus.STALE:
        return old
    return old.evolve(status=CacheStatus.STALE)


def _mark_pending(key: QueryKey, old: CacheEntry | None) -> CacheEntry:
    if old is None:
        return CacheEntry(key, status=CacheStatus.PENDING)
    return old.evolve(status=CacheStatus.PENDING)


def _restore_stale(old: CacheEntry | None) -> CacheEntry | None:
    if old is None or old.status is not CacheStatus.PENDING:
        return old
    return old.evolve(status=CacheStatus.STALE)


def _record_failure(
    key: QueryKey, failure: FetchFailure, old: CacheEntry | None
) -> CacheEntry:
    if old is None:
        return CacheEntry(key, status=CacheStatus.STALE, error=failure)
    return old.evolve(status=CacheStatus.STALE, error=failure)
