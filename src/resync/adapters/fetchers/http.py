"""HTTP implementation of the query-cache `Fetcher` collaborator.

A `QueryKey` maps to one GET request:

- ``key.path`` is joined to the base URL;
- scalar parameters become further path segments
  (``QueryKey.of("/api/communities", 7)`` -> ``/api/communities/7``);
- mapping parameters become query arguments
  (``QueryKey.of("/api/posts", {"sort": "new"})`` -> ``/api/posts?sort=new``).

Network errors, non-2xx statuses and undecodable bodies all surface as
`FetchFailure`, which the store records without discarding cached data.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

import aiohttp

from resync.interfaces.query_cache import FetchFailure, QueryKey

logger = logging.getLogger(__name__)


def _is_pair_set(param: Any) -> bool:
    return isinstance(param, frozenset) and all(
        isinstance(item, tuple) and len(item) == 2 for item in param  # pylint: disable=R2004
    )


def request_target(key: QueryKey) -> tuple[str, dict[str, str]]:
    """Return the ``(path, query)`` pair a key is fetched from."""
    segments = [key.path.rstrip("/")]
    query: dict[str, str] = {}
    for param in key.params:
        if _is_pair_set(param):
            query.update((str(k), str(v)) for k, v in sorted(param, key=str))
        elif isinstance(param, Mapping):
            query.update((str(k), str(v)) for k, v in param.items())
        else:
            segments.append(quote(str(param), safe=""))
    return "/".join(segments), query


class HttpQueryFetcher:
    """Fetch query results as JSON over HTTP.

    Args:
        base_url: Scheme and authority of the API, e.g. ``http://localhost:5000``.
        session: Optional shared `aiohttp.ClientSession`; one is created lazily
            otherwise and released by `close`.
        headers: Extra request headers.
    """

    def __init__(
        self,
        base_url: str,
        *,
        session: aiohttp.ClientSession | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._session = session
        self._owns_session = session is None
        self._headers = {"Accept": "application/json", **(headers or {})}

    async def __call__(self, key: QueryKey) -> Any:
        return await self.fetch(key)

    async def fetch(self, key: QueryKey) -> Any:
        """GET the resource behind *key* and return the decoded JSON body.

        Raises:
            FetchFailure: On network, HTTP status or decoding errors.
        """
        path, query = request_target(key)
        url = f"{self._base_url}{path}"
        session = self._get_session()
        logger.debug("GET %s %s", url, query or "")
        try:
            async with session.get(url, params=query, headers=self._headers) as resp:
                if resp.status >= 400:  # pylint: disable=R2004
                    raise FetchFailure(key, f"HTTP {resp.status} {resp.reason}")
                return await resp.json(content_type=None)
        except aiohttp.ClientError as e:
            raise FetchFailure(key, f"{type(e).__name__}: {e}") from e
        except ValueError as e:
            raise FetchFailure(key, f"invalid JSON body: {e}") from e

    async def close(self) -> None:
        """Close the HTTP session if this fetcher created it."""
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session
