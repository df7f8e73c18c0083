"""Alembic migration scripts applied by the bootstrap setup."""
