"""Alembic environment for the RESYNC setup migrations.

The bootstrap connector drives this module programmatically (see
`resync.config.build_alembic_config`); it also works from the ``alembic``
command line with ``-x url=...``.

Every run compares types and server defaults, and SQLite connections use batch
mode so ALTER TABLE is emulated.
"""

from logging.config import fileConfig

from alembic import context

import resync.adapters.db.schema  # noqa: F401 # pylint: disable=unused-import
from resync import config as resync_config
from resync.adapters.db.engine import is_sqlite, make_engine
from resync.adapters.db.metadata import metadata

# pylint: disable=no-member

alembic_config = context.config

if alembic_config.config_file_name is not None:
    fileConfig(alembic_config.config_file_name)

COMPARE_OPTIONS = {"compare_type": True, "compare_server_default": True}


def target_url() -> str:
    """The database to migrate: ``-x url``, then the config, then RESYNC_DB_URL.

    Raises:
        DatabaseUrlNotSetError: If none of them provides a URL.
    """
    url = context.get_x_argument(as_dictionary=True).get("url")
    url = url or alembic_config.get_main_option(resync_config.ALEMBIC_URL_KEY)
    # an unexpanded ini placeholder counts as unset
    if url and "%(" not in url:
        return url
    return resync_config.get_db_url()


def migrate_offline(url: str) -> None:
    """Emit the migration SQL for *url* without connecting."""
    context.configure(
        url=url,
        target_metadata=metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **COMPARE_OPTIONS,
    )
    with context.begin_transaction():
        context.run_migrations()


def migrate_online(url: str) -> None:
    """Apply the migrations over a live connection to *url*."""
    engine = make_engine(url)
    try:
        with engine.connect() as connection:
            context.configure(
                connection=connection,
                target_metadata=metadata,
                render_as_batch=is_sqlite(url),
                **COMPARE_OPTIONS,
            )
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


if context.is_offline_mode():
    migrate_offline(target_url())
else:
    migrate_online(target_url())
