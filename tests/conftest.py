"""Global pytest fixtures for RESYNC."""

from __future__ import annotations

import pytest

from resync.config import ReconnectPolicy, RefetchPolicy

pytest_plugins = [
    "tests.fixtures.sqlite",
    "tests.fixtures.fakes",
]


@pytest.fixture
def fast_refetch_policy() -> RefetchPolicy:
    """Refetch policy without backoff delays: 2 attempts, 0.5s timeout each."""
    return RefetchPolicy(timeout=0.5, attempts=2, initial_delay=0, max_delay=0)


@pytest.fixture
def fast_reconnect_policy() -> ReconnectPolicy:
    """Reconnect policy without backoff delays: 3 attempts per outage."""
    return ReconnectPolicy(max_attempts=3, initial_delay=0, max_delay=0)


@pytest.fixture(autouse=True)
def _clean_resync_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's RESYNC_* variables out of the tests."""
    for name in (
        "RESYNC_DB_URL",
        "RESYNC_DB_CANDIDATES",
        "RESYNC_PROBE_TIMEOUT",
        "RESYNC_REFETCH_TIMEOUT",
        "RESYNC_REFETCH_ATTEMPTS",
        "RESYNC_RECONNECT_ATTEMPTS",
        "RESYNC_RECONNECT_MAX_DELAY",
    ):
        monkeypatch.delenv(name, raising=False)
