"""Domain layer utilities for entity payloads."""

from collections.abc import Mapping, Sequence
from typing import Any

from .errors import MissingEntityIdError

ID_FIELD = "id"


def entity_id(entity: Any) -> Any:
    """Return the ``id`` of an entity payload.

    Raises:
        MissingEntityIdError: If the payload is not a mapping or has no ``id``.
    """
    if not isinstance(entity, Mapping) or ID_FIELD not in entity:
        raise MissingEntityIdError(entity)
    return entity[ID_FIELD]


def is_entity_sequence(data: Any) -> bool:
    """Return True if *data* is a list-like result set (not a str/bytes/mapping)."""
    return isinstance(data, Sequence) and not isinstance(data, (str, bytes, Mapping))


def append_if_absent(data: Any, entity: Mapping[str, Any]) -> Any:
    """Append *entity* to a result set unless an entity with its id is present.

    Absent data becomes a one-element list. Single-entity data (a detail view)
    is returned unchanged: a newly created entity never belongs to it.

    Returns:
        The merged data. The input is never mutated.
    """
    if data is None:
        return [entity]
    if not is_entity_sequence(data):
        return data
    new_id = entity_id(entity)
    if any(_id_of(item) == new_id for item in data):
        return data
    return [*data, entity]


def replace_by_id(data: Any, entity: Mapping[str, Any]) -> Any:
    """Replace the entity with the same id as *entity*; never insert.

    Works on result sets and on single-entity data.

    Returns:
        The merged data. The input is never mutated.
    """
    target_id = entity_id(entity)
    if data is None:
        return None
    if isinstance(data, Mapping):
        return entity if _id_of(data) == target_id else data
    if not is_entity_sequence(data):
        return data
    if not any(_id_of(item) == target_id for item in data):
        return data
    return [entity if _id_of(item) == target_id else item for item in data]


def _id_of(item: Any) -> Any:
    # foreign items in a result set never match an entity id
    if isinstance(item, Mapping):
        return item.get(ID_FIELD, _NO_ID)
    return _NO_ID


_NO_ID = object()
