"""OSC-8 hyperlink rendering for the RESYNC CLI help epilog."""

import os
import sys
from typing import TextIO

OSC8_TERMINALS = {"apple_terminal", "vscode", "iterm.app", "wezterm", "kitty"}


def supports_osc8(stream: TextIO | None = None) -> bool:
    """Heuristically detect whether *stream* (default stdout) renders OSC-8 links.

    Non-TTY streams never do. For TTYs a conservative allowlist of terminal
    identifiers is consulted.
    """
    stream = stream or sys.stdout
    if not getattr(stream, "isatty", lambda: False)():
        return False
    return bool(
        (os.getenv("TERM_PROGRAM") or "").lower() in OSC8_TERMINALS
        or os.getenv("WT_SESSION")  # Windows Terminal
        or os.getenv("VTE_VERSION")  # GNOME Terminal, Tilix, etc.
        or os.getenv("TERM", "").startswith(("alacritty", "konsole"))
    )


def hyperlink(url: str, label: str | None = None) -> str:
    """Return *url* as a clickable OSC-8 link, or plain text when unsupported."""
    text = label or url
    if not supports_osc8():
        return text if label is None else f"{text} <{url}>"
    return f"\x1b]8;;{url}\x07{text}\x1b]8;;\x07"
