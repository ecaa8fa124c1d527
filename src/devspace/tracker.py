"""Matching of hook events across CLI runs, and delivery of the stored backlog.

Each DevSpace hook runs the CLI once, so the start and end of an operation
arrive in different processes. The tracker stores every event in the log and,
when an end hook arrives, looks up its start hook to compute the duration.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from store import LogStore, RecordDecodeError, StoreError, flatten_fields

from .events import Event, event_key
from .hooks import get_before_hook
from .processor import Processor

logger = logging.getLogger(__name__)


class EventBag(dict[str, Any]):
    """Record data read back from the store, re-appendable as is."""

    def key(self) -> str:
        return event_key(str(self.get("hook") or ""), str(self.get("execution_id") or ""))

    def to_fields(self) -> dict[str, Any]:
        return flatten_fields(self)

    @classmethod
    def from_fields(cls, data: Mapping[str, Any]) -> EventBag:
        return cls(data)


class EventTracker:
    """Matches events, calculates durations and stores the data in a store.

    It also delivers the unprocessed events on `flush()`.
    """

    def __init__(self, *, processor: Processor, store: LogStore) -> None:
        """Create a tracker over an initialized store."""
        self._processor = processor
        self._store = store

    def track(self, event: Event) -> Event:
        """Store an event, adding `duration_ms` when its start hook is known.

        Returns the event as stored. Append failures are logged, never
        raised: telemetry must not break the command being tracked.
        """
        before = self._try_get_before_event(event)
        if before is not None:
            event = self._combine_events(before, event)

        try:
            self._store.append(event)
        except (StoreError, ValueError) as exc:
            logger.warning("Failed to store %s event: %s", event.hook or "<unnamed>", exc)
        return event

    def flush(self) -> list[dict[str, Any]]:
        """Deliver all unprocessed events in one batch, then mark them processed.

        Returns the delivered batch. Processor errors propagate and nothing is
        marked, so the same backlog is delivered again on the next flush. A
        `StoreWriteError` while marking also propagates; whatever was left
        unmarked is delivered again.
        """
        batch = [EventBag.from_fields(data) for data in self._store.get_unprocessed()]
        if not batch:
            logger.debug("Nothing to flush")
            return []

        self._processor.process_records(batch)
        self._store.mark_processed(batch)
        logger.info("Flushed %d events", len(batch))
        return list(batch)

    def _try_get_before_event(self, event: Event) -> Event | None:
        """Look up the stored start event for an end hook, if any."""
        before_hook = get_before_hook(event.hook)
        if not before_hook:
            return None

        key = event_key(before_hook, event.execution_id)
        try:
            return self._store.get(key, Event)
        except RecordDecodeError as exc:
            logger.warning("Ignoring unreadable start event %s: %s", key, exc)
            return None

    @staticmethod
    def _combine_events(before: Event, after: Event) -> Event:
        """Return a copy of `after` carrying the duration since `before`."""
        duration = after.timestamp - before.timestamp
        if duration < 0:
            logger.warning(
                "Start event %s is newer than %s (%d ms); not recording a duration",
                before.hook,
                after.hook,
                -duration,
            )
            return after
        return after.model_copy(update={"duration_ms": duration})
