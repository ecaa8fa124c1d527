"""Event processors (delivery sinks for the stored backlog)."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Protocol


class Processor(Protocol):
    """Accepts a whole batch of stored records in one call.

    Implementations raise on failure. There is no partial acknowledgement: a
    raised error means none of the batch counts as delivered.
    """

    def process_records(self, records: Sequence[Mapping[str, Any]]) -> None:
        """Deliver a batch of records."""


class InMemoryProcessor:
    """In-memory processor for tests and local debugging."""

    def __init__(self, *, fail_with: BaseException | None = None) -> None:
        """Create a processor; with `fail_with`, every call raises that error."""
        self.fail_with = fail_with
        self.batches: list[list[dict[str, Any]]] = []

    def process_records(self, records: Sequence[Mapping[str, Any]]) -> None:
        """Record the batch (or raise the configured failure)."""
        self.batches.append([dict(r) for r in records])
        if self.fail_with is not None:
            raise self.fail_with

    @property
    def last_batch(self) -> list[dict[str, Any]]:
        """The most recent batch received, or an empty list."""
        return self.batches[-1] if self.batches else []
