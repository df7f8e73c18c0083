"""The `MetaData` shared by every table the bootstrap setup creates.

Constraint and index names are derived from a naming convention instead of
being left to each backend, so the packaged migration and the live schema
agree on names across SQLite and PostgreSQL (``pk_communities``,
``uq_communities_name``, ``ck_communities_visibility_allowed``, ...).
"""

from sqlalchemy import MetaData

NAMING_CONVENTION = {
    "pk": "pk_%(table_name)s",
    "uq": "uq_%(table_name)s_%(column_0_N_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "ix": "ix_%(table_name)s_%(column_0_N_label)s",
    "fk": "fk_%(table_name)s_%(column_0_N_name)s_%(referred_table_name)s",
}

metadata = MetaData(naming_convention=NAMING_CONVENTION)
