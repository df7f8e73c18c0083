"""Unit tests for the BootstrapConnectionResolver with a scripted connector."""

from __future__ import annotations

import logging

import pytest

from resync.adapters.redactor import Redactor
from resync.interfaces.connector import (
    ConnectionCandidate,
    ProbeFailure,
    SetupFailure,
)
from resync.service_layer.resolver import BootstrapConnectionResolver
from tests.fixtures.fakes import FakeConnector

# pylint: disable=magic-value-comparison

A = ConnectionCandidate("postgresql://a/db", label="A")
B = ConnectionCandidate("postgresql://b/db", label="B")
C = ConnectionCandidate("postgresql://c/db", label="C")


@pytest.mark.asyncio
async def test_first_working_candidate_wins_and_later_ones_are_untouched():
    """[A, B, C] with only B working selects B; C is never probed."""
    connector = FakeConnector(working=[B.url, C.url])
    resolver = BootstrapConnectionResolver(connector)

    result = await resolver.resolve([A, B, C])

    assert result.ready
    assert result.candidate is B
    assert connector.probed == [A.url, B.url]
    assert connector.set_up == [B.url]
    assert [f.candidate for f in result.failures] == [A]


@pytest.mark.asyncio
async def test_all_candidates_failing_means_fallback(caplog):
    """No usable candidate: fallback result, one warning per candidate, no raise."""
    bad_x = ConnectionCandidate("bad://x")
    bad_y = ConnectionCandidate("bad://y")
    connector = FakeConnector()
    resolver = BootstrapConnectionResolver(connector)

    with caplog.at_level(logging.WARNING):
        result = await resolver.resolve([bad_x, bad_y])

    assert result.fallback
    assert not result.ready
    assert result.candidate is None
    assert [type(f) for f in result.failures] == [ProbeFailure, ProbeFailure]
    assert connector.probed == ["bad://x", "bad://y"]
    assert "rejected (probe)" in caplog.text
    assert "operating in fallback mode" in caplog.text


@pytest.mark.asyncio
async def test_empty_candidate_list_is_fallback():
    """Nothing to try is a fallback, not an error."""
    result = await BootstrapConnectionResolver(FakeConnector()).resolve([])
    assert result.fallback
    assert result.failures == ()


@pytest.mark.asyncio
async def test_setup_failure_moves_on_to_next_candidate():
    """A candidate that answers but rejects the setup is skipped."""
    connector = FakeConnector(working=[B.url], setup_failing=[A.url])
    result = await BootstrapConnectionResolver(connector).resolve([A, B])

    assert result.candidate is B
    (failure,) = result.failures
    assert isinstance(failure, SetupFailure)
    assert failure.stage == "setup"
    assert connector.set_up == [A.url, B.url]


@pytest.mark.asyncio
async def test_hanging_probe_times_out():
    """A probe that never answers is abandoned after the probe timeout."""
    connector = FakeConnector(working=[B.url], hanging=[A.url])
    resolver = BootstrapConnectionResolver(connector, probe_timeout=0.01)

    result = await resolver.resolve([A, B])

    assert result.candidate is B
    assert "no answer within 0.01s" in result.failures[0].reason


@pytest.mark.asyncio
async def test_unexpected_connector_errors_are_candidate_failures():
    """Errors other than the declared failures still only reject the candidate."""

    class Exploding(FakeConnector):
        """Connector raising a plain exception from the probe."""

        async def probe(self, candidate):
            raise OSError("name resolution failed")

    result = await BootstrapConnectionResolver(Exploding()).resolve([A])

    assert result.fallback
    assert result.failures[0].reason == "OSError: name resolution failed"


@pytest.mark.asyncio
async def test_logs_redact_credentials(caplog):
    """Candidate URLs and password overrides never reach the logs in clear."""
    secret = ConnectionCandidate(
        "postgresql://alice:hunter2@db/forum", password="s3cr3t-override"
    )

    class Leaky(FakeConnector):
        """Connector whose failure message echoes the credentials."""

        async def probe(self, candidate):
            raise ProbeFailure(
                candidate, f"auth failed for {candidate.url} using {candidate.password}"
            )

    resolver = BootstrapConnectionResolver(Leaky(), redactor=Redactor())
    with caplog.at_level(logging.DEBUG):
        await resolver.resolve([secret])

    assert "hunter2" not in caplog.text
    assert "s3cr3t-override" not in caplog.text
    assert "alice:***@db" in caplog.text


def test_probe_timeout_must_be_positive():
    """A non-positive probe timeout is a configuration error."""
    with pytest.raises(ValueError):
        BootstrapConnectionResolver(FakeConnector(), probe_timeout=0)


def test_candidate_repr_masks_password():
    """The password override is never shown by repr()."""
    candidate = ConnectionCandidate("sqlite://", password="hunter2")
    assert "hunter2" not in repr(candidate)


@pytest.mark.parametrize(
    "url",
    [
        "postgresql+psycopg://alice:hunter2@db:5432/forum",
        "postgresql://alice:hunter2@db:notaport/forum",
    ],
)
def test_candidate_repr_masks_password_in_url(url):
    """A password embedded in the URL is masked, the user and host stay visible."""
    shown = repr(ConnectionCandidate(url))
    assert "hunter2" not in shown
    assert "alice:***@db" in shown


def test_candidate_requires_url():
    """Candidates need a non-empty URL."""
    with pytest.raises(ValueError):
        ConnectionCandidate("  ")
