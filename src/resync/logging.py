"""Logging helpers used by the RESYNC CLI.

- `config_console_handler`: Rich console output on stderr. Records from
  third-party loggers (aiohttp, sqlalchemy, alembic, tenacity) get a short
  ``[name]`` prefix so they stand out from RESYNC's own messages.
- `config_flight_recorder`: an in-memory buffer of DEBUG records that is
  written to a file when something goes wrong (WARNING or above), so a failed
  resolution or a reconnect storm can be diagnosed after the fact.
- `RedactingFilter`: masks credentials in every record before any handler
  formats it. Candidate URLs and driver errors routinely embed passwords.
- `configure_logging`: installs the above on the root logger and applies the
  per-logger levels.
- `log_startup`: one summary line plus DEBUG diagnostics.
"""

from __future__ import annotations

import logging
import os
import platform
import sys
from logging.handlers import MemoryHandler
from pathlib import Path
from typing import TYPE_CHECKING, Literal, TypeAlias

import aiohttp
import alembic
import sqlalchemy
from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from logging import Logger

    from resync.interfaces.redactor import Redactor

# pylint: disable=too-few-public-methods

PROJECT_PREFIX = "resync"
CONSOLE_FORMAT = "%(prefix)s %(message)s"
DEBUG_CONSOLE_FORMAT = "%(asctime)s %(name)s: %(message)s"
RECORDER_FORMAT = (
    "[%(asctime)s] [%(process)d:%(threadName)s] "
    "%(levelname)s %(name)s:%(lineno)d: %(message)s"
)

ColorSystem: TypeAlias = Literal["auto", "standard", "256", "truecolor", "windows"]


class ThirdPartyPrefixFilter(logging.Filter):
    """Set ``record.prefix`` to ``[top-level-logger]`` for non-RESYNC records."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name == PROJECT_PREFIX or record.name.startswith(
            PROJECT_PREFIX + "."
        ):
            record.prefix = ""
        else:
            record.prefix = f"[{record.name.split('.')[0]}]"
        return True


class RedactingFilter(logging.Filter):
    """Mask secrets in log records using a `Redactor`.

    The message is rendered once (``msg % args``), sanitized, and stored back
    with empty args, so every downstream handler sees the redacted text.
    Exception text is sanitized as well.
    """

    def __init__(self, redactor: Redactor) -> None:
        super().__init__()
        self._redactor = redactor

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = self._redactor.sanitize(record.getMessage())
        record.args = None
        if record.exc_info and not record.exc_text:
            record.exc_text = logging.Formatter().formatException(record.exc_info)
        if record.exc_text:
            record.exc_text = self._redactor.sanitize(record.exc_text)
        return True


def config_console_handler(
    level: int = logging.INFO, debug_mode: bool = False, color: bool = True
) -> RichHandler:
    """Configure and return a RichHandler for console output.

    Args:
        level: Minimum level for console output (DEBUG in debug mode).
        debug_mode: Show timestamps, logger names and source paths instead of
            the short third-party prefix.
        color: Enable color output; mirrors click-extra's ``--color/--no-color``.

    Returns:
        RichHandler: Handler writing to stderr.
    """
    color_system: ColorSystem | None = "auto" if color else None
    console = Console(color_system=color_system, stderr=True)

    handler = RichHandler(
        level=logging.DEBUG if debug_mode else level,
        console=console,
        rich_tracebacks=True,
        show_time=False,
        show_path=debug_mode,
        enable_link_path=debug_mode,
    )
    if debug_mode:
        handler.setFormatter(logging.Formatter(fmt=DEBUG_CONSOLE_FORMAT))
    else:
        handler.setFormatter(logging.Formatter(fmt=CONSOLE_FORMAT))
        handler.addFilter(ThirdPartyPrefixFilter())
    return handler


def config_flight_recorder(
    path: Path,
    capacity: int = 2000,
    flush_level: int = logging.WARNING,
    flush_on_close: bool = False,
) -> MemoryHandler:
    """Configure and return an in-memory flight recorder backed by a file.

    Up to *capacity* records are buffered and written to *path* when a record
    at *flush_level* or above arrives (or on close if *flush_on_close*).
    """
    file_handler = logging.FileHandler(path, mode="w", encoding="utf-8", delay=True)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(RECORDER_FORMAT))

    return MemoryHandler(
        capacity=capacity,
        flushLevel=flush_level,
        target=file_handler,
        flushOnClose=flush_on_close,
    )


def configure_logging(  # pylint: disable=too-many-arguments
    *,
    console_level: int,
    debug_mode: bool,
    color: bool,
    recorder_path: Path | None,
    recorder_capacity: int,
    recorder_flush_on_close: bool,
    logger_levels: dict[str, int],
    redactor: Redactor,
) -> list[logging.Handler]:
    """Install the console handler and, with *recorder_path*, the flight recorder.

    Every handler gets a `RedactingFilter`. The root logger passes everything
    through (DEBUG); *logger_levels* then sets per-logger minimums.

    Returns:
        The installed handlers, console first.
    """
    handlers: list[logging.Handler] = [
        config_console_handler(level=console_level, debug_mode=debug_mode, color=color)
    ]
    if recorder_path is not None:
        handlers.append(
            config_flight_recorder(
                path=recorder_path,
                capacity=recorder_capacity,
                flush_on_close=recorder_flush_on_close,
            )
        )
    redacting = RedactingFilter(redactor)
    for handler in handlers:
        handler.addFilter(redacting)

    logging.basicConfig(level=logging.DEBUG, handlers=handlers, force=True)
    for name, lvl in logger_levels.items():
        logging.getLogger(name).setLevel(lvl)
    return handlers


def log_startup(  # pylint: disable=too-many-arguments
    logger: Logger,
    *,
    app_version: str,
    level: int,
    handlers: list[logging.Handler],
    log_path: Path | None,
    flight_recorder: bool,
    flight_capacity: int | None,
    force_flush_fr: bool,
    logger_levels: dict[str, int],
    redactor_mode: str,
) -> None:
    """Log a one-line startup summary and DEBUG-level diagnostics.

    Diagnostics cover the interpreter, platform, process, the versions of the
    network and database libraries, the active handlers, flight-recorder
    settings, per-logger overrides and the redaction mode.
    """
    logger.info(
        "RESYNC %s: console=%s, flight-recorder=%s",
        app_version,
        logging.getLevelName(level),
        "ON" if flight_recorder else "OFF",
    )

    logger.debug("Python: %s", sys.version.split()[0])
    logger.debug("Platform: %s %s", platform.system(), platform.release())
    logger.debug("PID: %s, CWD: %s", os.getpid(), Path.cwd())
    logger.debug(
        "aiohttp: %s, SQLAlchemy: %s, Alembic: %s",
        aiohttp.__version__,
        sqlalchemy.__version__,
        alembic.__version__,
    )
    logger.debug("Handlers: %s", [type(h).__name__ for h in handlers])
    if flight_recorder:
        logger.debug(
            "Flight recorder: path=%s, capacity=%s, flush_on_close=%s",
            str(log_path) if log_path else "<none>",
            flight_capacity,
            force_flush_fr,
        )
    logger.debug(
        "Per-logger overrides: %s",
        {name: logging.getLevelName(lvl) for name, lvl in logger_levels.items()}
        or "<none>",
    )
    logger.debug("Redactor mode: %s", redactor_mode)
