"""Unit tests for domain events and wire decoding."""

import dataclasses

import pytest

from resync.domain.errors import (
    InvalidEventError,
    MissingEntityIdError,
    UnknownEventTypeError,
)
from resync.domain.events import EVENT_TYPES, EntityCreated, EntityUpdated, from_wire

# pylint: disable=magic-value-comparison


def test_event_types_registry_uses_wire_names():
    """Both event classes are registered under their wire name."""
    assert EVENT_TYPES == {
        "entityCreated": EntityCreated,
        "entityUpdated": EntityUpdated,
    }


def test_from_wire_builds_matching_event():
    """from_wire() picks the class for the wire name and keeps the payload."""
    event = from_wire("entityCreated", {"id": 2, "name": "rust"})
    assert isinstance(event, EntityCreated)
    assert event.entity_id == 2
    assert event.payload["name"] == "rust"


def test_from_wire_unknown_type():
    """An unknown wire name raises UnknownEventTypeError (an InvalidEventError)."""
    with pytest.raises(UnknownEventTypeError) as excinfo:
        from_wire("postVoted", {"id": 1})
    assert excinfo.value.event_type == "postVoted"
    assert isinstance(excinfo.value, InvalidEventError)


def test_event_without_id_is_rejected_at_construction():
    """Events validate their payload eagerly."""
    with pytest.raises(MissingEntityIdError):
        EntityUpdated({"name": "anonymous"})


def test_events_are_immutable():
    """Domain events are frozen dataclasses."""
    event = EntityCreated({"id": 1})
    with pytest.raises(dataclasses.FrozenInstanceError):
        event.payload = {"id": 2}  # type: ignore[misc]
