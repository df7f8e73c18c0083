"""Interfaces (application boundary) for RESYNC.

Defines framework-free application contracts: ABCs and small DTOs shared by
the service layer and adapters (query cache, live transport, data-store
connector, redactor). Business rules stay out of this package.

Dependency rule: this package is independent; do not import from any
`resync.*` modules. It may be imported by `resync.service_layer`,
`resync.adapters`, and `resync.bootstrap`.
"""
