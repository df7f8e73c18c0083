"""Query cache interfaces for RESYNC.

This module defines:
- The `QueryKey` value object identifying a cached result set.
- The immutable `CacheEntry` snapshot and its `CacheStatus`.
- The `QueryCache` port (framework-free ABC) implemented by the store.
- The `Fetcher` collaborator signature and its `FetchFailure` error.

Contract overview
-----------------
Keys:
- A key is an endpoint path plus an ordered parameter tuple.
- Keys compare by deep value: nested lists/tuples, sets and dicts inside the
  parameters are frozen, so two structurally equal keys hash the same.
- Key ``A`` is a prefix of ``B`` when the paths are equal and ``A.params`` is a
  leading slice of ``B.params``.

Entries:
- ``data`` is a list of entities, a single entity, or ``None`` (absent).
- ``status`` is ``pending`` only while a refetch is in flight.
- ``error`` carries the last refetch failure; cleared by a successful refetch.

Transitions:
- `set` is an atomic read-modify-write; re-entrant calls are queued.
- `invalidate` marks entries stale and schedules refetches for keys that
  have subscribers; a failing refetch keeps the last data.
- `subscribe` callbacks observe every committed transition of their key.
"""

from __future__ import annotations

import abc
import dataclasses
from collections.abc import Awaitable, Callable, Iterable, Mapping, Set
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import asyncio

# --- Exceptions ---


class FetchFailure(Exception):
    """The refetch collaborator could not produce data for a key.

    Attributes:
        key: The key whose refetch failed.
    """

    def __init__(self, key: QueryKey, reason: str) -> None:
        super().__init__(f"Fetching {key} failed: {reason}")
        self.key = key
        self.reason = reason


# --- Keys ---


def _freeze(value: Any) -> Any:
    """Return a hashable, structurally comparable version of *value*."""
    if isinstance(value, Mapping):
        return frozenset((k, _freeze(v)) for k, v in value.items())
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    if isinstance(value, Set):
        return frozenset(_freeze(v) for v in value)
    return value


@dataclass(frozen=True, slots=True)
class QueryKey:
    """Structural identifier of a cached result set.

    Examples:
        ```py
        >>> QueryKey("/communities") == QueryKey("/communities", ())
        True
        >>> QueryKey.of("/communities", "trending").params
        ('trending',)
        ```
    """

    path: str
    params: tuple[Any, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.path, str) or not self.path.strip():
            raise ValueError("QueryKey path must be a non-empty string.")
        params = self.params
        if isinstance(params, (str, bytes)):
            params = (params,)
        object.__setattr__(self, "params", tuple(_freeze(p) for p in params))

    @classmethod
    def of(cls, path: str, *params: Any) -> QueryKey:
        """Build a key from a path and positional parameters."""
        return cls(path, params)

    def is_prefix_of(self, other: QueryKey) -> bool:
        """Return True if this key matches *other* under prefix matching."""
        return (
            self.path == other.path
            and self.params == other.params[: len(self.params)]
        )

    def __str__(self) -> str:
        if not self.params:
            return self.path
        return f"{self.path}{list(self.params)!r}"


# --- Entries ---


class CacheStatus(str, Enum):
    """Lifecycle status of a cache entry.

    Attributes:
        FRESH: Data confirmed by the last successful fetch.
        STALE: Data is provisional or invalidated (possibly absent).
        PENDING: A refetch is in flight.
    """

    FRESH = "fresh"
    STALE = "stale"
    PENDING = "pending"


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """Immutable snapshot of one cached result set.

    ``updated_at`` is the wall-clock time (``time.time()``) at which the store
    committed the entry; it does not take part in equality.
    """

    key: QueryKey
    data: Any = None
    status: CacheStatus = CacheStatus.STALE
    error: FetchFailure | None = None
    updated_at: float | None = field(default=None, compare=False)

    @property
    def has_data(self) -> bool:
        """True when the entry holds data (from a fetch or an optimistic merge)."""
        return self.data is not None

    def evolve(self, **changes: Any) -> CacheEntry:
        """Return a copy of this entry with *changes* applied."""
        return dataclasses.replace(self, **changes)


Updater = Callable[[CacheEntry | None], CacheEntry | None]
Subscriber = Callable[[CacheEntry], None]
Unsubscribe = Callable[[], None]
Fetcher = Callable[[QueryKey], Awaitable[Any]]


def data_updater(key: QueryKey, fn: Callable[[Any], Any]) -> Updater:
    """Build an updater that only changes the data of *key* with ``fn(old_data)``.

    An existing entry keeps its status; a new entry is created ``stale``
    because its data has not been confirmed by a fetch. Returning the very same
    data object from *fn* leaves the entry untouched.
    """

    def updater(old: CacheEntry | None) -> CacheEntry | None:
        old_data = old.data if old is not None else None
        new_data = fn(old_data)
        if new_data is old_data:
            return old
        if old is None:
            return CacheEntry(key, data=new_data, status=CacheStatus.STALE)
        return old.evolve(data=new_data)

    return updater


# --- Query Cache Interface ---


class QueryCache(abc.ABC):
    """An abstract base class for a keyed store of query results."""

    @abc.abstractmethod
    def get(self, key: QueryKey) -> CacheEntry | None:
        """Return the current entry for *key*, or None if absent."""

    @abc.abstractmethod
    def set(self, key: QueryKey, updater: Updater) -> CacheEntry | None:
        """Atomically replace the entry for *key* with ``updater(old)``.

        The updater must be pure and return a `CacheEntry` for the same key;
        returning the current entry unchanged (None for an absent one) is a
        no-op and notifies nobody.
        Calls made while a transition is being applied (from an updater or a
        subscriber) are queued and applied afterwards, never nested.

        Returns:
            The committed entry, or None when the update was queued.

        Raises:
            ValueError: If the updater returns an entry for another key.
            Exception: Whatever the caller's own updater raises; nothing is
                committed in that case.
        """

    @abc.abstractmethod
    def invalidate(
        self, keys: Iterable[QueryKey], *, exact: bool = False
    ) -> list[asyncio.Task[CacheEntry]]:
        """Mark matching entries stale and refetch those with subscribers.

        Args:
            keys: Keys to invalidate.
            exact: When False, every entry whose key has one of *keys* as a
                prefix matches.

        Returns:
            The refetch tasks that were scheduled (possibly empty).
        """

    @abc.abstractmethod
    def subscribe(self, key: QueryKey, callback: Subscriber) -> Unsubscribe:
        """Call *callback* with every committed entry for *key*.

        Returns:
            An idempotent handle removing the subscription.
        """
