"""Cache Synchronizer: turns live domain events into cache transitions.

For every event the synchronizer does two things, deliberately redundant:

1. An **optimistic merge** into each affected cache entry, for immediate
   visibility. Created entities are appended unless an entity with the same
   ``id`` is already present, so re-delivery is a no-op; updated entities
   replace their previous representation.
2. An **invalidation** of the same keys, so the server's ordering, filtering
   and pagination eventually supersede the provisional data. If that refetch
   fails, the merged data stays.

Which keys an event affects is application knowledge: it is supplied through
an `AffectedKeys` registry, never hardcoded here.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from functools import partial
from typing import TYPE_CHECKING, Any, Union

from resync.domain.events import (
    DomainEvent,
    Entity,
    EntityCreated,
    EntityUpdated,
    from_wire,
)
from resync.domain.utils import append_if_absent, replace_by_id
from resync.interfaces.query_cache import QueryCache, QueryKey, data_updater

if TYPE_CHECKING:
    from resync.service_layer.channel import EventChannelManager

logger = logging.getLogger(__name__)

KeyFunction = Callable[[Entity], Union[QueryKey, Iterable[QueryKey], None]]
KeySource = Union[QueryKey, KeyFunction]
MergeStrategy = Callable[[Any, Entity], Any]

MERGE_STRATEGIES: dict[type[DomainEvent], MergeStrategy] = {
    EntityCreated: append_if_absent,
    EntityUpdated: replace_by_id,
}


class AffectedKeys:
    """Registry of the query keys each event type affects.

    Each registered source is either a fixed `QueryKey` or a function of the
    event's entity returning a key, several keys, or None.

    Example:
        ```py
        keys = AffectedKeys()
        keys.register(
            EntityCreated,
            QueryKey("/communities"),
            QueryKey.of("/communities", "trending"),
        )
        keys.register(
            EntityCreated, lambda post: QueryKey.of("/posts", post["communityId"])
        )
        ```
    """

    def __init__(
        self, sources: Mapping[str, Iterable[KeySource]] | None = None
    ) -> None:
        self._sources: dict[str, list[KeySource]] = {}
        for event_type, event_sources in (sources or {}).items():
            self.register(event_type, *event_sources)

    def register(
        self, event_type: str | type[DomainEvent], *sources: KeySource
    ) -> AffectedKeys:
        """Add key sources for an event type (wire name or event class).

        Returns:
            The registry itself, so registrations can be chained.
        """
        name = event_type if isinstance(event_type, str) else event_type.event_type
        for source in sources:
            if not isinstance(source, QueryKey) and not callable(source):
                raise TypeError(
                    f"Key source must be a QueryKey or a callable, got {source!r}"
                )
        self._sources.setdefault(name, []).extend(sources)
        return self

    @property
    def event_types(self) -> list[str]:
        """Wire names of every event type with at least one source."""
        return [name for name, sources in self._sources.items() if sources]

    def static_keys(self) -> list[QueryKey]:
        """Fixed keys registered for any event type, deduplicated, in order."""
        keys = (
            source
            for sources in self._sources.values()
            for source in sources
            if isinstance(source, QueryKey)
        )
        return list(dict.fromkeys(keys))

    def resolve(self, event: DomainEvent) -> list[QueryKey]:
        """Return the keys affected by *event*, deduplicated, in registration order."""
        keys: list[QueryKey] = []
        for source in self._sources.get(event.event_type, ()):
            produced = source if isinstance(source, QueryKey) else source(event.payload)
            if produced is None:
                continue
            if isinstance(produced, QueryKey):
                keys.append(produced)
                continue
            for key in produced:
                if not isinstance(key, QueryKey):
                    raise TypeError(f"Key function produced {key!r}, not a QueryKey")
                keys.append(key)
        return list(dict.fromkeys(keys))


class CacheSynchronizer:
    """Applies domain events to a query cache.

    Args:
        store: The query cache to keep convergent.
        affected_keys: Which keys each event type affects.
    """

    def __init__(self, store: QueryCache, affected_keys: AffectedKeys) -> None:
        self.store = store
        self.affected_keys = affected_keys

    def apply(self, event: DomainEvent) -> list[QueryKey]:
        """Optimistically merge *event* and invalidate the affected keys.

        Returns:
            The affected keys.
        """
        keys = self.affected_keys.resolve(event)
        if not keys:
            logger.debug("No cache keys affected by %s", event.event_type)
            return keys

        merge = partial(MERGE_STRATEGIES[type(event)], entity=event.payload)
        for key in keys:
            self.store.set(key, data_updater(key, merge))
        self.store.invalidate(keys, exact=True)
        logger.debug(
            "Applied %s(id=%r) to %d key(s)", event.event_type, event.entity_id, len(keys)
        )
        return keys

    def handle(self, event_type: str, payload: Any) -> list[QueryKey]:
        """Build a domain event from a wire frame and apply it.

        Raises:
            InvalidEventError: If the frame is not a known, well-formed event.
        """
        return self.apply(from_wire(event_type, payload))

    def attach(self, channel: EventChannelManager) -> Callable[[], None]:
        """Register this synchronizer on *channel* for every known event type.

        Returns:
            A callable detaching every registration made here.
        """
        detachers = []
        for event_type in self.affected_keys.event_types:
            handler = _ChannelHandler(self, event_type)
            detachers.append(channel.on_event(event_type, handler))

        def detach() -> None:
            for unregister in detachers:
                unregister()

        return detach


class _ChannelHandler:
    """Channel handler bound to one event type (named for log messages)."""

    def __init__(self, synchronizer: CacheSynchronizer, event_type: str) -> None:
        self._synchronizer = synchronizer
        self._event_type = event_type
        self.__name__ = f"sync_{event_type}"

    def __call__(self, payload: Any) -> None:
        self._synchronizer.handle(self._event_type, payload)
