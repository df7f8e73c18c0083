"""Create communities table

Revision ID: 4c1f0a9e2b7d
Revises:
Create Date: 2026-10-19

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import context, op

# pylint: disable=no-member

# revision identifiers, used by Alembic.
revision: str = "4c1f0a9e2b7d"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade schema.

    A ``communities`` table that already exists (created by the application
    owning the schema) is adopted as is; only the revision gets recorded.
    """
    if not context.is_offline_mode() and sa.inspect(op.get_bind()).has_table(
        "communities"
    ):
        return
    op.create_table(
        "communities",
        sa.Column(
            "id",
            sa.BigInteger().with_variant(sa.Integer(), "sqlite"),
            primary_key=True,
            autoincrement=True,
        ),
        sa.Column("name", sa.String(length=64), nullable=False),
        sa.Column("display_name", sa.String(length=120), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "visibility", sa.String(length=16), nullable=False, server_default="public"
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.current_timestamp(),
        ),
        sa.Column("creator_id", sa.Integer(), nullable=False),
        sa.Column("member_count", sa.Integer(), nullable=False, server_default="1"),
        sa.CheckConstraint(
            "visibility IN ('public', 'private')",
            name=op.f("ck_communities_visibility_allowed"),
        ),
        sa.CheckConstraint(
            "member_count >= 0", name=op.f("ck_communities_member_count_non_negative")
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_communities")),
        sa.UniqueConstraint("name", name=op.f("uq_communities_name")),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("communities")
