"""Service layer for RESYNC.

Implements the synchronization use-cases: the query cache store, the event
channel manager, the cache synchronizer tying them together, and the bootstrap
connection resolver. Talks to the outside world only through the ports in
`resync.interfaces`.

Dependency rule: may import `resync.domain`, `resync.interfaces` and
`resync.config`, but not `resync.adapters` or `resync.entrypoints`.
"""
