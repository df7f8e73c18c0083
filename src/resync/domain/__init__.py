"""Domain layer for RESYNC.

Contains the domain events pushed over the live channel and small helpers for
working with entity payloads. This package is deliberately technology-agnostic.

Dependency rule: do not import from `resync.adapters` or `resync.entrypoints`.
"""
