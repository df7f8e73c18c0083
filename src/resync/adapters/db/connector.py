"""SQLAlchemy/Alembic implementation of the `Connector` port.

- ``probe`` opens a short-lived engine with a driver-level connect timeout and
  runs ``SELECT 1``.
- ``apply_setup`` runs ``alembic upgrade head`` against the candidate. Alembic
  tracks the applied revision in ``alembic_version``, so repeated runs
  against a store that is already set up do nothing.

Both operations are blocking DB-API work and run in a worker thread so the
event loop (and the resolver's probe timeout) stay responsive.
"""

from __future__ import annotations

import asyncio
import io
import logging

from alembic import command
from alembic.util.exc import CommandError
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError, NoSuchModuleError, SQLAlchemyError

from resync.adapters.db.engine import make_engine
from resync.config import DEFAULT_PROBE_TIMEOUT, build_alembic_config
from resync.interfaces.connector import (
    ConnectionCandidate,
    Connector,
    ProbeFailure,
    SetupFailure,
)

logger = logging.getLogger(__name__)

PROBE_QUERY = "SELECT 1"


def effective_url(candidate: ConnectionCandidate) -> str:
    """Return the candidate URL with its password override applied.

    Raises:
        ArgumentError: If the URL cannot be parsed by SQLAlchemy.
    """
    if candidate.password is None:
        return candidate.url
    url = make_url(candidate.url).set(password=candidate.password)
    return url.render_as_string(hide_password=False)


def _first_line(error: BaseException) -> str:
    lines = str(error).strip().splitlines()
    return f"{type(error).__name__}: {lines[0]}" if lines else type(error).__name__


class SqlAlchemyConnector(Connector):
    """Probe and set up a relational store through SQLAlchemy.

    Args:
        connect_timeout: Driver-level connect timeout used by ``probe``.
    """

    def __init__(self, connect_timeout: float = DEFAULT_PROBE_TIMEOUT) -> None:
        self._connect_timeout = connect_timeout

    async def probe(self, candidate: ConnectionCandidate) -> None:
        await asyncio.to_thread(self._probe_sync, candidate)

    async def apply_setup(self, candidate: ConnectionCandidate) -> None:
        await asyncio.to_thread(self._setup_sync, candidate)

    def _probe_sync(self, candidate: ConnectionCandidate) -> None:
        try:
            url = effective_url(candidate)
            engine = make_engine(url, connect_timeout=self._connect_timeout)
        except (ArgumentError, NoSuchModuleError, ImportError) as e:
            raise ProbeFailure(candidate, _first_line(e)) from e

        try:
            with engine.connect() as conn:
                conn.execute(text(PROBE_QUERY))
        except SQLAlchemyError as e:
            raise ProbeFailure(candidate, _first_line(e)) from e
        finally:
            engine.dispose()

    def _setup_sync(self, candidate: ConnectionCandidate) -> None:
        # keep alembic's "Running upgrade ..." lines out of the host's stdout
        output = io.StringIO()
        try:
            cfg = build_alembic_config(effective_url(candidate), stdout=output)
            command.upgrade(cfg, "head")
        except (SQLAlchemyError, CommandError) as e:
            raise SetupFailure(candidate, _first_line(e)) from e
        logger.debug("Setup applied: %s", output.getvalue().strip() or "up to date")
