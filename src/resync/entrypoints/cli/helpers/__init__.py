"""CLI helpers for RESYNC.

Message emitters that write to stderr with emoji to ASCII fallbacks, OSC-8
terminal hyperlinks when supported, and the ``-L NAME=LEVEL`` option parser.
"""

from .hyperlinks import hyperlink
from .messages import error, success, warn

__all__ = ["error", "hyperlink", "success", "warn"]
