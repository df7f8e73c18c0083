"""Bootstrap (composition root) for RESYNC.

Assembles the layer at runtime: wires concrete adapters (transports, fetchers,
the SQLAlchemy connector, the redactor) to the service-layer components, reads
configuration, and exposes small facades for entrypoints.

Import rules:
- Entry points import *this* package (not adapters/service_layer/interfaces/domain).
- This package may import: `resync.adapters`, `resync.service_layer`,
  `resync.interfaces`, `resync.domain`, and `resync.config`.
- Inner layers must not import `resync.bootstrap`.

Public surface:
- Re-export composition factories from this module; keep wiring helpers internal.
- No business rules live here; this is assembly and lifecycle only.
"""

from resync.bootstrap.bootstrap import (
    SyncClient,
    build_resolver,
    build_sync_client,
    build_websocket_client,
    candidates_from_urls,
    resolve_data_store,
)

__all__ = [
    "SyncClient",
    "build_resolver",
    "build_sync_client",
    "build_websocket_client",
    "candidates_from_urls",
    "resolve_data_store",
]
