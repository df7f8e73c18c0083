"""Unit tests for dialect normalization and engine helpers."""

import pytest
from sqlalchemy.engine import make_url

from resync.adapters.db.dialects import DialectName, UnsupportedDialect
from resync.adapters.db.engine import is_sqlite, timeout_connect_args
from resync.adapters.db.metadata import metadata
from resync.adapters.db.schema import communities

# pylint: disable=magic-value-comparison


@pytest.mark.parametrize(
    "input_str,expected",
    [
        ("postgresql", DialectName.POSTGRES),
        ("postgres", DialectName.POSTGRES),
        ("postgresql+psycopg", DialectName.POSTGRES),
        ("sqlite+pysqlite", DialectName.SQLITE),
    ],
)
def test_from_string_aliases(input_str, expected):
    """Dialect aliases and driver-qualified names map to DialectName."""
    assert DialectName.from_string(input_str) is expected


@pytest.mark.parametrize("bad", [None, "", "mysql", "bad"])
def test_from_string_rejects_unsupported(bad):
    """Unknown dialects raise UnsupportedDialect."""
    with pytest.raises(UnsupportedDialect):
        DialectName.from_string(bad)


@pytest.mark.parametrize(
    "dialect, seconds, expected",
    [
        (DialectName.SQLITE, 2.5, {"timeout": 2.5}),
        (DialectName.POSTGRES, 2.5, {"connect_timeout": 3}),
        (DialectName.POSTGRES, 0.2, {"connect_timeout": 1}),
    ],
)
def test_connect_timeout_args(dialect, seconds, expected):
    """Each driver gets its own spelling of the connect timeout."""
    assert dialect.connect_timeout_args(seconds) == expected


def test_timeout_connect_args_unknown_backend_is_empty():
    """Backends without a known timeout option get no extra arguments."""
    assert timeout_connect_args("mysql://u@h/db", 5) == {}
    assert timeout_connect_args("postgresql+psycopg://u@h/db", 5) == {
        "connect_timeout": 5
    }


def test_is_sqlite():
    """is_sqlite() distinguishes SQLite URLs from others."""
    assert is_sqlite("sqlite:///:memory:")
    assert is_sqlite(make_url("sqlite+pysqlite:///file.db"))
    assert not is_sqlite("postgresql+psycopg://u:p@localhost/db")


def test_communities_constraints_follow_naming_convention():
    """Constraint names are deterministic (naming convention applied)."""
    assert communities.metadata is metadata
    names = {c.name for c in communities.constraints}
    assert {
        "pk_communities",
        "ck_communities_visibility_allowed",
        "ck_communities_member_count_non_negative",
    } <= names
