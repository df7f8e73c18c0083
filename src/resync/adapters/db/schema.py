"""Tables created by the bootstrap setup.

Only the entity tables whose rows are broadcast over the live channel are
declared here; the rest of the forum schema is owned by the web application.
"""

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    DateTime,
    Integer,
    String,
    Table,
    Text,
    func,
)

from resync.adapters.db.metadata import metadata

ID_TYPE = BigInteger().with_variant(Integer(), "sqlite")

communities = Table(
    "communities",
    metadata,
    Column("id", ID_TYPE, primary_key=True, autoincrement=True),
    Column("name", String(64), nullable=False, unique=True),
    Column("display_name", String(120), nullable=False),
    Column("description", Text, nullable=True),
    Column("visibility", String(16), nullable=False, server_default="public"),
    Column(
        "created_at",
        DateTime(timezone=True),
        nullable=False,
        server_default=func.current_timestamp(),
    ),
    Column("creator_id", Integer, nullable=False),
    Column("member_count", Integer, nullable=False, server_default="1"),
    CheckConstraint(
        "visibility IN ('public', 'private')", name="visibility_allowed"
    ),
    CheckConstraint("member_count >= 0", name="member_count_non_negative"),
)
