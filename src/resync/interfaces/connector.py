"""Data-store connector interfaces for RESYNC.

This module defines:
- The immutable `ConnectionCandidate` DTO (one entry of the ordered
  candidate list the bootstrap resolver walks).
- The `Connector` port: a liveness probe and an idempotent setup step.
- The per-candidate failure hierarchy.

Contract overview
-----------------
- `probe(candidate)` runs a trivial query; raises `ProbeFailure` when the
  candidate does not answer.
- `apply_setup(candidate)` brings the store's schema up to date with
  create-if-absent semantics: running it against a store that is already set
  up is a no-op. Raises `SetupFailure` on error.
- Candidates are configuration, never mutated at runtime.
"""

import abc
import re
from dataclasses import dataclass

from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

_USERINFO_PASSWORD = re.compile(r"//([^:/@\s]*):[^@/\s]*@")

# --- Exceptions ---


class CandidateFailure(Exception):
    """Base class for a failure attributed to a single connection candidate.

    Attributes:
        candidate: The candidate that failed.
        reason: Short human-readable cause.
    """

    stage = "candidate"

    def __init__(self, candidate: "ConnectionCandidate", reason: str) -> None:
        super().__init__(f"{self.stage} failed: {reason}")
        self.candidate = candidate
        self.reason = reason


class ProbeFailure(CandidateFailure):
    """The candidate did not answer the liveness probe (or timed out)."""

    stage = "probe"


class SetupFailure(CandidateFailure):
    """The candidate answered, but applying the setup script failed."""

    stage = "setup"


# --- Candidate DTO ---


@dataclass(frozen=True, slots=True)
class ConnectionCandidate:
    """One connection target in a fallback sequence.

    Attributes:
        url: Database URL; may embed credentials.
        password: Optional password overriding the one embedded in ``url``.
        label: Optional short name used in diagnostics.
    """

    url: str
    password: str | None = None
    label: str | None = None

    def __post_init__(self) -> None:
        if not self.url or not self.url.strip():
            raise ValueError("ConnectionCandidate url must be non-empty.")

    def __repr__(self) -> str:
        # neither the override nor a password embedded in the URL is shown
        secret = "***" if self.password is not None else None
        return (
            f"ConnectionCandidate(url={_display_url(self.url)!r}, "
            f"password={secret!r}, label={self.label!r})"
        )


# --- Connector Interface ---


class Connector(abc.ABC):
    """An abstract base class for probing and setting up a data store."""

    @abc.abstractmethod
    async def probe(self, candidate: ConnectionCandidate) -> None:
        """Run a lightweight liveness query against *candidate*.

        Raises:
            ProbeFailure: If the candidate is unreachable or rejects the query.
        """

    @abc.abstractmethod
    async def apply_setup(self, candidate: ConnectionCandidate) -> None:
        """Apply the setup script to *candidate* (create-if-absent).

        Raises:
            SetupFailure: If the setup script cannot be applied.
        """


def _display_url(url: str) -> str:
    try:
        return make_url(url).render_as_string(hide_password=True)
    except (ArgumentError, ValueError):
        return _USERINFO_PASSWORD.sub(r"//\1:***@", url)
