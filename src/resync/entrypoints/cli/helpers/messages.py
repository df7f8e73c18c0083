"""Terminal message helpers for the RESYNC CLI.

Status lines go to stderr so stdout stays machine-readable (``resync watch``
prints one JSON document per line there). Each line starts with an emoji
glyph, or an ASCII fallback when stderr cannot encode it.
"""

import click

CAUTION = ("⚠️", "[!]")  # pragma: no mutate
SUCCESS = ("✅", "[OK]")  # pragma: no mutate
ERROR = ("❌", "[X]")  # pragma: no mutate


def _supports_character(character: str) -> bool:
    """Return True if *character* can be encoded on stderr."""
    stream = click.get_text_stream("stderr")  # pragma: no mutate
    encoding = getattr(stream, "encoding", None) or "ascii"
    try:
        character.encode(encoding)
    except (UnicodeEncodeError, LookupError):
        return False
    return True


def glyph(pair: tuple[str, str]) -> str:
    """Return the emoji of an ``(emoji, fallback)`` pair when stderr supports it.

    Examples:
        ``glyph(SUCCESS)`` is ``"✅"`` on a UTF-8 terminal and ``"[OK]"`` otherwise.
    """
    emoji, fallback = pair
    return emoji if _supports_character(emoji) else fallback


def warn(msg: str) -> None:
    """Emit a yellow, bold warning line to **stderr**."""
    click.secho(f"{glyph(CAUTION)}  {msg}", fg="yellow", bold=True, err=True)


def success(msg: str) -> None:
    """Emit a green, bold success line to **stderr**."""
    click.secho(f"{glyph(SUCCESS)}  {msg}", fg="green", bold=True, err=True)


def error(msg: str) -> None:
    """Emit a red, bold error line to **stderr**."""
    click.secho(f"{glyph(ERROR)}  {msg}", fg="red", bold=True, err=True)
