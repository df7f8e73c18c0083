"""Integration tests for the data-store bootstrap with real SQLite candidates."""

from __future__ import annotations

import pytest
from sqlalchemy import inspect

from resync.adapters.db.engine import make_engine
from resync.bootstrap import resolve_data_store

# pylint: disable=magic-value-comparison

UNREACHABLE = "sqlite:////nonexistent-dir/deeper/resync.db"


@pytest.mark.asyncio
async def test_second_candidate_is_selected_and_set_up(sqlite_url):
    """An unreachable first candidate is skipped; the second one gets the setup."""
    result = await resolve_data_store([UNREACHABLE, sqlite_url], probe_timeout=5)

    assert result.ready
    assert result.candidate.url == sqlite_url
    assert [f.candidate.url for f in result.failures] == [UNREACHABLE]

    engine = make_engine(sqlite_url)
    try:
        assert "communities" in inspect(engine).get_table_names()
    finally:
        engine.dispose()


@pytest.mark.asyncio
async def test_nothing_usable_is_fallback():
    """Only bad candidates: fallback mode, every failure recorded, no raise."""
    result = await resolve_data_store(["bad://x", "bad://y"], probe_timeout=1)

    assert result.fallback
    assert [f.candidate.url for f in result.failures] == ["bad://x", "bad://y"]


@pytest.mark.asyncio
async def test_candidates_come_from_environment(monkeypatch, sqlite_url):
    """Without explicit URLs, RESYNC_DB_URL and RESYNC_DB_CANDIDATES are used."""
    monkeypatch.setenv("RESYNC_DB_URL", "bad://x")
    monkeypatch.setenv("RESYNC_DB_CANDIDATES", sqlite_url)

    result = await resolve_data_store(probe_timeout=5)

    assert result.candidate.url == sqlite_url
