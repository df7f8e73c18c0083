"""Domain events pushed by the server over the live channel.

Events carry a full entity payload (a mapping with at least an ``id``). They
are not guaranteed exactly-once nor ordered: the same entity may arrive twice
and events for different entities may interleave.
"""

import abc
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, ClassVar

from .errors import UnknownEventTypeError
from .utils import entity_id

Entity = Mapping[str, Any]


@dataclass(frozen=True, slots=True)
class DomainEvent(abc.ABC):
    """Base class for all domain events.

    Subclasses declare the wire name they are received under via
    ``event_type``.
    """

    event_type: ClassVar[str]

    payload: Entity

    def __post_init__(self) -> None:
        # fail fast on payloads without a stable identifier
        entity_id(self.payload)

    @property
    def entity_id(self) -> Any:
        """Return the identifier of the entity this event is about."""
        return entity_id(self.payload)


@dataclass(frozen=True, slots=True)
class EntityCreated(DomainEvent):
    """A new entity was created on the server."""

    event_type: ClassVar[str] = "entityCreated"


@dataclass(frozen=True, slots=True)
class EntityUpdated(DomainEvent):
    """An existing entity changed on the server (votes, counters, edits)."""

    event_type: ClassVar[str] = "entityUpdated"


EVENT_TYPES: dict[str, type[DomainEvent]] = {
    EntityCreated.event_type: EntityCreated,
    EntityUpdated.event_type: EntityUpdated,
}


def from_wire(event_type: str, payload: Entity) -> DomainEvent:
    """Build a domain event from its wire name and payload.

    Args:
        event_type: The event name as received from the transport.
        payload: The decoded event payload.

    Returns:
        The matching domain event instance.

    Raises:
        UnknownEventTypeError: If no domain event is registered for the name.
        MissingEntityIdError: If the payload has no ``id``.
    """
    try:
        event_cls = EVENT_TYPES[event_type]
    except KeyError as e:
        raise UnknownEventTypeError(event_type) from e
    return event_cls(payload)
