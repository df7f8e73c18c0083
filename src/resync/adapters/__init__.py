"""Adapters (infrastructure) for RESYNC.

Provide concrete implementations of the ports: the SQLAlchemy/Alembic data-store
connector, the aiohttp WebSocket transport and HTTP fetcher, the in-memory
transport, and the regex redactor.

Dependency rule: may import `resync.interfaces` and `resync.domain`; those
packages must not import this one.
"""
