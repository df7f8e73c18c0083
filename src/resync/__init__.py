"""RESYNC

A resilient synchronization layer: keeps client-side query caches convergent
with a server that pushes domain events over an unreliable live channel, and
bootstraps a working data-store connection from an ordered list of candidates
without ever crashing the hosting process.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
