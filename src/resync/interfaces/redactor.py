"""Interfaces for redacting sensitive values.

Candidate URLs, driver error messages and live-channel endpoints routinely
carry credentials. Everything RESYNC writes to logs or to the terminal about
them goes through a `Redactor` first.

Two entry points:
- `sanitize_db_url` for a single connection URL.
- `sanitize` for free-form text (exception messages, failure reasons), with
  optional literal secrets that must be masked wherever they appear.
"""

import abc
from collections.abc import Iterable
from enum import Enum

# pylint: disable=too-few-public-methods


class RedactorMode(Enum):
    """How much of a credential survives redaction.

    LENIENT masks secrets (passwords, tokens) and keeps the user name so an
    operator can still tell candidates apart. STRICT masks the user name too.
    """

    LENIENT = "lenient"
    STRICT = "strict"


class Redactor(abc.ABC):
    """Masks credentials in URLs and free-form text."""

    _mode: RedactorMode

    @abc.abstractmethod
    def sanitize_db_url(self, raw_url: str) -> str:
        """Return *raw_url* with its password (and, in STRICT mode, user) masked.

        The URL is treated like any other text handed to `sanitize`.
        """

    @abc.abstractmethod
    def sanitize(self, text: str, secrets: Iterable[str | None] = ()) -> str:
        """Return *text* with every recognizable secret masked.

        Args:
            text: Free-form text, possibly embedding URLs or tokens.
            secrets: Literal values known to be secret (e.g. a password
                override). ``None`` and empty entries are ignored.
        """

    @property
    def mode(self) -> RedactorMode:
        """The active `RedactorMode`."""
        return self._mode
