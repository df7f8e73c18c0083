"""Entrypoints (inbound adapters) for RESYNC.

Expose the library to the outside world through the ``resync`` CLI. Parse and
validate inputs, call the bootstrap wiring, and present results.

Dependency rule: may import `resync.bootstrap` and `resync.service_layer`;
avoid importing concrete adapters directly.
"""
