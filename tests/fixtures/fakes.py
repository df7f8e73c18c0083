"""Test doubles for the refetch and connector collaborators."""

from __future__ import annotations

import asyncio
from collections import defaultdict, deque
from collections.abc import Iterable
from typing import Any

import pytest

from resync.adapters.transport.in_memory import InMemoryTransport
from resync.interfaces.connector import (
    ConnectionCandidate,
    Connector,
    ProbeFailure,
    SetupFailure,
)
from resync.interfaces.query_cache import FetchFailure, QueryKey

# pylint: disable=redefined-outer-name


class FakeFetcher:
    """Scripted refetch collaborator.

    Each key has a queue of outcomes; a data value is returned, an exception
    instance is raised. When a key's queue is exhausted, its last outcome is
    repeated. ``gate`` (when set) makes every fetch wait until it is released.
    """

    def __init__(self) -> None:
        self.calls: list[QueryKey] = []
        self._outcomes: dict[QueryKey, deque[Any]] = defaultdict(deque)
        self._last: dict[QueryKey, Any] = {}
        self.gate: asyncio.Event | None = None

    def script(self, key: QueryKey, *outcomes: Any) -> FakeFetcher:
        """Queue outcomes for *key*."""
        self._outcomes[key].extend(outcomes)
        return self

    async def __call__(self, key: QueryKey) -> Any:
        self.calls.append(key)
        if self.gate is not None:
            await self.gate.wait()
        queue = self._outcomes[key]
        if queue:
            self._last[key] = queue.popleft()
        outcome = self._last.get(key, FetchFailure(key, "nothing scripted"))
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class FakeConnector(Connector):
    """Connector whose behavior is scripted per candidate URL.

    Args:
        working: URLs that pass the probe and the setup.
        setup_failing: URLs that pass the probe but fail the setup.
        hanging: URLs whose probe never answers.
    """

    def __init__(
        self,
        working: Iterable[str] = (),
        *,
        setup_failing: Iterable[str] = (),
        hanging: Iterable[str] = (),
    ) -> None:
        self.working = set(working)
        self.setup_failing = set(setup_failing)
        self.hanging = set(hanging)
        self.probed: list[str] = []
        self.set_up: list[str] = []

    async def probe(self, candidate: ConnectionCandidate) -> None:
        self.probed.append(candidate.url)
        if candidate.url in self.hanging:
            await asyncio.Event().wait()
        if candidate.url not in self.working | self.setup_failing:
            raise ProbeFailure(candidate, "connection refused")

    async def apply_setup(self, candidate: ConnectionCandidate) -> None:
        self.set_up.append(candidate.url)
        if candidate.url in self.setup_failing:
            raise SetupFailure(candidate, "permission denied for schema public")


@pytest.fixture
def fetcher() -> FakeFetcher:
    """A fresh scripted fetcher."""
    return FakeFetcher()


@pytest.fixture
def transport() -> InMemoryTransport:
    """A fresh in-memory transport."""
    return InMemoryTransport()
