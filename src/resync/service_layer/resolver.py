"""Bootstrap Connection Resolver: pick a working data store at process start.

The resolver walks an ordered list of `ConnectionCandidate` objects with an
explicit loop and an early return:

1. probe the candidate under a short timeout;
2. on success, apply the (idempotent) setup script;
3. on the first candidate that passes both, report "ready" and stop;
4. on any failure, log the cause and move on to the next candidate.

When every candidate failed, the outcome is "fallback". That is an expected
result for the hosting process (operate without persistence), not an error:
no exception other than cancellation leaves `resolve`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass

from resync.config import DEFAULT_PROBE_TIMEOUT
from resync.interfaces.connector import (
    CandidateFailure,
    ConnectionCandidate,
    Connector,
    ProbeFailure,
    SetupFailure,
)
from resync.interfaces.redactor import Redactor

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ResolutionResult:
    """Outcome of a resolution run.

    Attributes:
        candidate: The selected candidate, or None in fallback mode.
        failures: Every per-candidate failure met on the way, in order.
    """

    candidate: ConnectionCandidate | None
    failures: tuple[CandidateFailure, ...] = ()

    @property
    def ready(self) -> bool:
        """True when a candidate was selected and set up."""
        return self.candidate is not None

    @property
    def fallback(self) -> bool:
        """True when no candidate was usable: operate in fallback/offline mode."""
        return self.candidate is None


class BootstrapConnectionResolver:
    """First-success-wins resolver over an ordered candidate list.

    Args:
        connector: Probes candidates and applies the setup script.
        probe_timeout: Seconds allowed for each probe.
        redactor: Used to render candidate URLs and failure messages in logs.
            Without one, candidates are shown by label or position only.
    """

    def __init__(
        self,
        connector: Connector,
        *,
        probe_timeout: float = DEFAULT_PROBE_TIMEOUT,
        redactor: Redactor | None = None,
    ) -> None:
        if probe_timeout <= 0:
            raise ValueError("probe_timeout must be > 0")
        self._connector = connector
        self._probe_timeout = probe_timeout
        self._redactor = redactor

    async def resolve(
        self, candidates: Iterable[ConnectionCandidate]
    ) -> ResolutionResult:
        """Select the first candidate that answers the probe and accepts setup.

        Args:
            candidates: Candidates in priority order. Later candidates are
                never touched once one succeeds.

        Returns:
            A `ResolutionResult`; ``fallback`` is True when all candidates failed.
        """
        failures: list[CandidateFailure] = []
        for position, candidate in enumerate(candidates, start=1):
            display = self._display(candidate, position)
            logger.debug("Trying data store candidate %s", display)

            if (failure := await self._try(candidate)) is None:
                logger.info("Data store ready: %s", display)
                return ResolutionResult(candidate, tuple(failures))

            failures.append(failure)
            logger.warning(
                "Data store candidate %s rejected (%s): %s",
                display,
                failure.stage,
                self._redact(failure.reason, candidate),
            )

        logger.warning(
            "No data store candidate available (%d tried), operating in fallback mode",
            len(failures),
        )
        return ResolutionResult(None, tuple(failures))

    async def _try(self, candidate: ConnectionCandidate) -> CandidateFailure | None:
        try:
            await asyncio.wait_for(
                self._connector.probe(candidate), timeout=self._probe_timeout
            )
        except ProbeFailure as failure:
            return failure
        except asyncio.TimeoutError:
            return ProbeFailure(
                candidate, f"no answer within {self._probe_timeout:g}s"
            )
        except Exception as e:  # pylint: disable=broad-except
            return ProbeFailure(candidate, _describe(e))

        try:
            await self._connector.apply_setup(candidate)
        except SetupFailure as failure:
            return failure
        except Exception as e:  # pylint: disable=broad-except
            return SetupFailure(candidate, _describe(e))
        return None

    def _display(self, candidate: ConnectionCandidate, position: int) -> str:
        name = f"#{position} {candidate.label}" if candidate.label else f"#{position}"
        if self._redactor is None:
            return name
        return f"{name} ({self._redactor.sanitize_db_url(candidate.url)})"

    def _redact(self, text: str, candidate: ConnectionCandidate) -> str:
        if self._redactor is None:
            return text
        return self._redactor.sanitize(text, secrets=(candidate.password,))


def _describe(error: BaseException) -> str:
    message = str(error).strip().splitlines()
    return f"{type(error).__name__}: {message[0]}" if message else type(error).__name__
