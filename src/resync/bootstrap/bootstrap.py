"""Wire the synchronization client and the data-store resolver."""

from __future__ import annotations

import dataclasses
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from resync import config
from resync.adapters.db.connector import SqlAlchemyConnector
from resync.adapters.fetchers.http import HttpQueryFetcher
from resync.adapters.redactor import Redactor
from resync.adapters.transport.aiohttp_ws import AiohttpWebSocketTransport
from resync.domain.events import EntityCreated, EntityUpdated
from resync.interfaces.connector import ConnectionCandidate
from resync.interfaces.query_cache import QueryKey
from resync.service_layer.cache_store import QueryCacheStore
from resync.service_layer.channel import EventChannelManager
from resync.service_layer.resolver import BootstrapConnectionResolver
from resync.service_layer.synchronizer import AffectedKeys, CacheSynchronizer

if TYPE_CHECKING:
    from resync.interfaces.query_cache import Fetcher
    from resync.interfaces.redactor import Redactor as AbstractRedactor
    from resync.interfaces.transport import Transport
    from resync.service_layer.channel import ErrorHandler
    from resync.service_layer.resolver import ResolutionResult


@dataclass(frozen=True)
class SyncClient:
    """A wired client session: cache store, live channel and synchronizer."""

    store: QueryCacheStore
    channel: EventChannelManager
    synchronizer: CacheSynchronizer
    detach: Callable[[], None]
    on_close: tuple[Callable[[], Awaitable[None]], ...] = ()

    async def start(self) -> bool:
        """Open the live channel; returns False if it could not connect."""
        return await self.channel.connect()

    async def aclose(self) -> None:
        """Detach the synchronizer, then close the channel and the store."""
        self.detach()
        await self.channel.close()
        await self.store.close()
        for release in self.on_close:
            await release()

    async def __aenter__(self) -> SyncClient:
        await self.start()
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()


def build_sync_client(
    transport: Transport,
    affected_keys: AffectedKeys,
    *,
    fetcher: Fetcher | None = None,
    refetch_policy: config.RefetchPolicy | None = None,
    reconnect_policy: config.ReconnectPolicy | None = None,
    error_handler: ErrorHandler | None = None,
) -> SyncClient:
    """Build a store, a channel over *transport* and a synchronizer joining them.

    Policies default to the values read from the environment.
    """
    store = QueryCacheStore(
        fetcher, refetch_policy=refetch_policy or config.get_refetch_policy()
    )
    channel = EventChannelManager(
        transport,
        reconnect_policy=reconnect_policy or config.get_reconnect_policy(),
        error_handler=error_handler,
    )
    synchronizer = CacheSynchronizer(store, affected_keys)
    detach = synchronizer.attach(channel)
    return SyncClient(
        store=store, channel=channel, synchronizer=synchronizer, detach=detach
    )


def candidates_from_urls(urls: Iterable[str]) -> tuple[ConnectionCandidate, ...]:
    """Turn candidate URL strings into candidates, keeping their order."""
    return tuple(ConnectionCandidate(url) for url in urls)


def build_resolver(
    *,
    probe_timeout: float | None = None,
    redactor: AbstractRedactor | None = None,
) -> BootstrapConnectionResolver:
    """Build a resolver over the SQLAlchemy connector."""
    timeout = probe_timeout if probe_timeout is not None else config.get_probe_timeout()
    return BootstrapConnectionResolver(
        SqlAlchemyConnector(connect_timeout=timeout),
        probe_timeout=timeout,
        redactor=redactor or Redactor(),
    )


async def resolve_data_store(
    urls: Iterable[str] | None = None,
    *,
    probe_timeout: float | None = None,
    redactor: AbstractRedactor | None = None,
) -> ResolutionResult:
    """Resolve the data store from *urls* (or the configured candidates).

    Never raises for unreachable candidates: check ``result.fallback``.
    """
    candidates = candidates_from_urls(
        urls if urls is not None else config.get_candidate_urls()
    )
    resolver = build_resolver(probe_timeout=probe_timeout, redactor=redactor)
    return await resolver.resolve(candidates)


def build_websocket_client(
    ws_url: str,
    key_paths: Iterable[str],
    *,
    api_url: str | None = None,
    error_handler: ErrorHandler | None = None,
) -> SyncClient:
    """Build a client watching *key_paths* over a WebSocket endpoint.

    Every created or updated entity is merged into each key, and the keys are
    refetched from *api_url* when one is given.
    """
    keys = [QueryKey(path) for path in key_paths]
    affected_keys = AffectedKeys()
    affected_keys.register(EntityCreated, *keys)
    affected_keys.register(EntityUpdated, *keys)

    fetcher = HttpQueryFetcher(api_url) if api_url else None
    client = build_sync_client(
        AiohttpWebSocketTransport(ws_url),
        affected_keys,
        fetcher=fetcher,
        error_handler=error_handler,
    )
    if fetcher is None:
        return client
    return dataclasses.replace(client, on_close=(fetcher.close,))
