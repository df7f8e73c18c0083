"""RESYNC CLI entry point.

Defines the top-level ``resync`` command (via Click-Extra) and registers the
subcommands.

Available commands
- ``resync db`` - data-store bootstrap (``resolve``) and schema ``status``.
- ``resync watch`` - follow a live event channel and print cache transitions.

Notes
- The CLI version is sourced from `resync.__version__` and displayed by
  Click-Extra (``--version``).
- The group stores the configured `Redactor` in ``ctx.obj["redactor"]``;
  subcommands use it for everything they display.

Examples
    $ resync --version
    $ resync -v db resolve --candidate sqlite:///resync.db
    $ resync watch ws://localhost:5000/live --key /api/communities
"""

import logging
from pathlib import Path

import click
import click_extra as clickx
from platformdirs import user_log_dir

from resync import __version__
from resync.adapters.redactor import Redactor
from resync.interfaces.redactor import RedactorMode
from resync.logging import configure_logging, log_startup

from .db import db as db_group
from .helpers import hyperlink
from .helpers.log_level_parser import parse_log_level
from .watch import watch as watch_command

logger = logging.getLogger(__name__)


HELP = """RESYNC command-line interface.

    RESYNC keeps client-side query caches convergent with a server that pushes
    entity events over a live channel, and bootstraps a working data store by
    probing an ordered list of candidates, degrading to fallback mode instead
    of failing when none answers.
    """


EPILOG = "\b\n" + "\n".join(
    [
        f"{click.style('See Also:', fg='blue', bold=True, underline=True)}",
        "  Env   : RESYNC_DB_URL, RESYNC_DB_CANDIDATES, RESYNC_PROBE_TIMEOUT",
        "  Alembic: " + hyperlink("https://alembic.sqlalchemy.org/"),
    ]
)


@clickx.extra_group(
    version=__version__,
    help=HELP,
    params=[
        clickx.ColorOption(show_envvar=True),
        clickx.TimerOption(show_envvar=True),
        clickx.ExtraVersionOption(),
    ],
    epilog=EPILOG,
)
@click.option(
    "--verbose",
    "-v",
    "verbose_count",
    count=True,
    help=(
        "Increase the default WARNING verbosity by one level "
        "for each additional repetition of the option."
    ),
    default=0,
)
@click.option(
    "--quiet",
    "-q",
    "quiet_count",
    count=True,
    help=(
        "Decrease the default WARNING verbosity by one level "
        "for each additional repetition of the option."
    ),
    default=0,
)
@click.option(
    "--debug/--no-debug",
    is_flag=True,
    help="Enable debug mode (timestamps, logger names and source paths).",
    default=False,
)
@click.option(
    "--log-path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Path to log file (overrides default flight recorder path).",
    default=Path(user_log_dir("resync", appauthor=False, ensure_exists=True))
    / "latest.log",
    envvar="RESYNC_LOG_PATH",
    show_default=True,
    show_envvar=True,
)
@click.option(
    "--flight-recorder-capacity",
    type=int,
    default=2000,
    hidden=True,
    envvar="RESYNC_FLIGHT_RECORDER_CAPACITY",
    show_envvar=True,
    help="Capacity of the flight recorder (in number of log records).",
)
@click.option(
    "--flight-recorder/--no-flight-recorder",
    "flight_recorder",
    is_flag=True,
    help=(
        "Keep the last N log records at DEBUG granularity (unaffected by -v/-q) "
        "and write them to --log-path when a WARNING/ERROR occurs, such as a "
        "rejected candidate or a dropped channel."
    ),
    default=True,
    show_envvar=True,
)
@click.option(
    "--force-flush/--no-force-flush",
    "force_flush_flight_recorder",
    is_flag=True,
    help="Also write the flight recorder buffer to --log-path on clean exit.",
    default=False,
    show_default=True,
    show_envvar=True,
)
@click.option(
    "-L",
    "--logger-level",
    "logger_levels",
    multiple=True,
    callback=parse_log_level,
    help=(
        "Set MINIMUM LEVEL for specific LOGGERS (NAME=LEVEL), for both console "
        "and flight recorder. Repeatable (e.g. -L aiohttp=INFO -L tenacity=DEBUG) "
        "or via RESYNC_LOGGER_LEVELS (comma/space list)."
    ),
    default=("aiohttp=WARNING", "sqlalchemy=WARNING", "alembic=WARNING"),
    show_default=True,
    show_envvar=True,
)
@click.option(
    "--redactor-mode",
    "redactor_mode",
    type=click.Choice([mode.value for mode in RedactorMode], case_sensitive=False),
    help=(
        "Redaction applied to logs and displayed URLs. "
        "'lenient' (default) hides passwords/tokens; "
        "'strict' also hides usernames/ids."
    ),
    default=RedactorMode.LENIENT.value,
    show_envvar=True,
    show_default=True,
)
@clickx.pass_context
def resync(  # pylint: disable=too-many-arguments, too-many-locals, too-many-positional-arguments
    ctx: click.Context,
    verbose_count: int,
    quiet_count: int,
    debug: bool,
    log_path: Path,
    flight_recorder_capacity: int,
    flight_recorder: bool,
    force_flush_flight_recorder: bool,
    logger_levels: dict[str, int],
    redactor_mode: str,
) -> None:
    """RESYNC command-line interface."""

    # each -v/-q moves the console one level away from WARNING
    level = logging.WARNING + 10 * (quiet_count - verbose_count)
    level = max(logging.DEBUG, min(logging.CRITICAL, level))

    redactor = Redactor(RedactorMode(redactor_mode.lower()))
    ctx.ensure_object(dict)["redactor"] = redactor

    handlers = configure_logging(
        console_level=level,
        debug_mode=debug,
        color=ctx.color is not False,
        recorder_path=log_path if flight_recorder else None,
        recorder_capacity=flight_recorder_capacity,
        recorder_flush_on_close=force_flush_flight_recorder,
        logger_levels=logger_levels,
        redactor=redactor,
    )
    log_startup(
        logger,
        app_version=__version__,
        level=level,
        handlers=handlers,
        log_path=log_path,
        flight_recorder=flight_recorder,
        flight_capacity=flight_recorder_capacity if flight_recorder else None,
        force_flush_fr=force_flush_flight_recorder,
        logger_levels=logger_levels,
        redactor_mode=redactor.mode.value,
    )

    ctx.call_on_close(logging.shutdown)


resync.add_command(db_group)
resync.add_command(watch_command)
