"""Forward-only iteration over a snapshot of stored records."""

from __future__ import annotations

import copy
from collections.abc import Iterator, Sequence
from typing import Any


class RecordCursor:
    """Iterates once over a pre-computed, ordered list of record data.

    The cursor is not a live view: appends made after it was created are not
    visible. Every yielded item is a deep copy so callers cannot alter the
    store's in-memory entries.
    """

    def __init__(self, items: Sequence[dict[str, Any]]) -> None:
        self._items = list(items)
        self._pos = 0

    def __iter__(self) -> Iterator[dict[str, Any]]:
        return self

    def __next__(self) -> dict[str, Any]:
        if self._pos >= len(self._items):
            raise StopIteration
        item = self._items[self._pos]
        self._pos += 1
        return copy.deepcopy(item)

    def __len__(self) -> int:
        """Total number of items in the snapshot (consumed or not)."""
        return len(self._items)
