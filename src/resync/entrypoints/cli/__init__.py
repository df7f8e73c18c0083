"""Command-line interface for RESYNC (``resync`` console script)."""
