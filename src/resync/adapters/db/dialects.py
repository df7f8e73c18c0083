"""Database dialect handling for candidate URLs.

Bootstrap candidates may point at different backends. This module normalizes
their dialect names into an Enum (instead of scattering string literals like
"postgresql" or "sqlite") and knows how each backend's driver spells a
connect timeout.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any


class UnsupportedDialect(Exception):
    """Raised when an unsupported database dialect is encountered."""


class DialectName(str, Enum):
    """Enumeration of supported SQLAlchemy dialect names.

    Attributes:
        POSTGRES: PostgreSQL dialect (``"postgresql"``).
        SQLITE:   SQLite dialect (``"sqlite"``).
    """

    POSTGRES = "postgresql"
    SQLITE = "sqlite"

    @classmethod
    def from_string(cls, dialect_str: str) -> DialectName:
        """Normalize and convert an arbitrary dialect string to DialectName.

        Accepts common aliases and driver-qualified names (e.g., 'postgres',
        'postgresql+psycopg', 'sqlite', 'sqlite+pysqlite').

        Raises:
            UnsupportedDialect: if the dialect is not recognized or supported.
        """

        raw = (dialect_str or "").strip().lower()
        base = raw.split("+", 1)[0]

        if base in {"postgres", "postgresql", "pg"}:
            return cls.POSTGRES
        if base in {"sqlite"}:
            return cls.SQLITE

        raise UnsupportedDialect(f"Unsupported dialect: {dialect_str!r}")

    def connect_timeout_args(self, seconds: float) -> dict[str, Any]:
        """Return driver ``connect_args`` bounding connection setup to *seconds*."""
        if self is DialectName.SQLITE:
            return {"timeout": seconds}
        # libpq only accepts whole seconds and treats 0 as "wait forever"
        return {"connect_timeout": max(1, math.ceil(seconds))}
