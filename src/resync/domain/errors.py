"""Domain-layer error definitions."""

# ============================================================================
#                           General domain errors
# ============================================================================


class DomainError(Exception):
    """Base class for domain-layer errors."""


# ============================================================================
#                           Event related errors
# ============================================================================


class InvalidEventError(DomainError):
    """Raised when an inbound event cannot be turned into a domain event."""


class UnknownEventTypeError(InvalidEventError):
    """Raised when a wire event name has no registered domain event type."""

    def __init__(self, event_type: str) -> None:
        super().__init__(f"Unknown event type '{event_type}'.")
        self.event_type = event_type


class MissingEntityIdError(InvalidEventError):
    """Raised when an entity payload does not carry an ``id`` field."""

    def __init__(self, payload: object) -> None:
        super().__init__(f"Entity payload has no 'id' field: {payload!r}")
        self.payload = payload
