"""Record codec.

Storable records describe themselves as a flat mapping of dot-separated field
paths (e.g. `command.name`). The store expands those paths into nested
dictionaries before writing, and readers turn the nested data back into typed
records via `from_fields`.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, TypeVar

_R = TypeVar("_R", bound="Recordable")


class RecordDecodeError(ValueError):
    """Stored data could not be turned back into a typed record."""


class Recordable(Protocol):
    """The minimal contract every storable entity satisfies."""

    def key(self) -> str:
        """Return the key identifying this record within one log."""

    def to_fields(self) -> Mapping[str, Any]:
        """Return the record as a mapping of dot-path -> value."""

    @classmethod
    def from_fields(cls: type[_R], data: Mapping[str, Any]) -> _R:
        """Build a record from nested stored data (raises `RecordDecodeError`)."""


def add_to_map(target: dict[str, Any], path: list[str], value: Any) -> None:
    """Set `value` at `path` inside `target`, creating intermediate dicts.

    A non-dict value sitting on an intermediate segment is replaced.
    """
    if not path:
        return
    head, rest = path[0], path[1:]
    if not rest:
        target[head] = value
        return
    child = target.get(head)
    if not isinstance(child, dict):
        child = {}
        target[head] = child
    add_to_map(child, rest, value)


def expand_fields(*field_maps: Mapping[str, Any]) -> dict[str, Any]:
    """Merge dot-path field maps into one nested dict; later maps win per path."""
    nested: dict[str, Any] = {}
    for fields in field_maps:
        for name, value in fields.items():
            add_to_map(nested, name.split("."), value)
    return nested


def flatten_fields(nested: Mapping[str, Any], prefix: str = "") -> dict[str, Any]:
    """Inverse of `expand_fields`.

    Empty dicts are kept as leaves so they survive a flatten/expand cycle.
    """
    flat: dict[str, Any] = {}
    for name, value in nested.items():
        path = f"{prefix}{name}"
        if isinstance(value, Mapping) and value:
            flat.update(flatten_fields(value, prefix=path + "."))
        else:
            flat[path] = value
    return flat
