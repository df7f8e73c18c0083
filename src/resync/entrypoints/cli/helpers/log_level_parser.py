"""Parse ``-L/--logger-level NAME=LEVEL`` options into a level mapping.

Values may be repeated or given as one comma/space separated list
(``RESYNC_LOGGER_LEVELS="aiohttp=INFO tenacity=DEBUG"``).
"""

import logging
import re

import click

#: Third-party loggers quieted unless overridden.
DEFAULT_LIB_LEVELS = {
    "aiohttp": logging.WARNING,
    "alembic": logging.WARNING,
    "sqlalchemy": logging.WARNING,
}

_SEPARATORS = re.compile(r"[,\s]+")


def _normalize_items(value: str | list[str] | tuple[str, ...]) -> list[str]:
    """Split a string or a sequence of strings into non-empty items."""
    chunks = [value] if isinstance(value, str) else list(value)
    return [item for chunk in chunks for item in _SEPARATORS.split(chunk) if item]


def parse_log_level(
    ctx: click.Context,  # pylint: disable=unused-argument
    param: click.Parameter | None,  # pylint: disable=unused-argument
    value: str | list[str] | tuple[str, ...],
) -> dict[str, int]:
    """Click callback turning NAME=LEVEL items into a name -> level dict.

    The result starts from `DEFAULT_LIB_LEVELS`; later items win.

    Raises:
        click.BadParameter: If an item is not NAME=LEVEL or LEVEL is unknown.
    """
    levels = dict(DEFAULT_LIB_LEVELS)
    for item in _normalize_items(value):
        name, sep, level_str = item.partition("=")
        if not sep or not name.strip():
            raise click.BadParameter(f"Expected NAME=LEVEL, got {item!r}")
        lvl = logging.getLevelName(level_str.strip().upper())
        if not isinstance(lvl, int):
            raise click.BadParameter(f"Invalid log level: {level_str}")
        levels[name.strip()] = lvl
    return levels
