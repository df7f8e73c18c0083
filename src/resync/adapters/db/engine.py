"""Engine construction for candidate data stores.

Every engine RESYNC opens, whether for a bootstrap probe, the setup
migrations or ``resync db status``, is built by `make_engine` so the same
driver options apply everywhere:

- a connect timeout expressed in the driver's own terms, so a dead candidate
  is rejected quickly instead of hanging the resolver;
- on SQLite, `SQLITE_PRAGMAS` run on every new DBAPI connection.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import URL, make_url

from resync.adapters.db.dialects import DialectName, UnsupportedDialect

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

SQLITE_BACKENDS = frozenset({"sqlite", "sqlite+pysqlite"})

SQLITE_PRAGMAS = (
    "PRAGMA foreign_keys=ON",
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
    "PRAGMA temp_store=MEMORY",
)


def is_sqlite(url: str | URL) -> bool:
    """True when *url* points at a SQLite database."""
    return make_url(url).get_backend_name() in SQLITE_BACKENDS


def timeout_connect_args(url: str | URL, connect_timeout: float) -> dict[str, Any]:
    """Return driver ``connect_args`` enforcing *connect_timeout* seconds.

    Unknown backends get no extra arguments.
    """
    try:
        dialect = DialectName.from_string(make_url(url).get_backend_name())
    except UnsupportedDialect:
        return {}
    return dialect.connect_timeout_args(connect_timeout)


def _run_sqlite_pragmas(dbapi_conn, _record) -> None:
    cursor = dbapi_conn.cursor()
    try:
        for pragma in SQLITE_PRAGMAS:
            cursor.execute(pragma)
    finally:
        cursor.close()


def make_engine(
    url: str | URL, *, echo: bool = False, connect_timeout: float | None = None
) -> Engine:
    """Build an Engine for *url*.

    Args:
        url: Database URL.
        echo: Log emitted SQL.
        connect_timeout: Seconds the driver may spend establishing a
            connection. ``None`` keeps the driver default.

    Returns:
        Engine: Not yet connected.
    """
    connect_args = (
        timeout_connect_args(url, connect_timeout) if connect_timeout else {}
    )
    engine = create_engine(url, echo=echo, connect_args=connect_args)
    if is_sqlite(url):
        event.listen(engine, "connect", _run_sqlite_pragmas)
    return engine
