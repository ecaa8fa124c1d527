from __future__ import annotations

import logging
from pathlib import Path

import pytest

from devspace import Command, Event, EventBag, EventTracker, InMemoryProcessor
from store import LogStore, StoreOptions, StoreWriteError

EXECUTION_ID = "9714f00a-b998-49e7-97a9-a8e2051905f7"

_COMMAND = Command(
    name="deploy",
    line="devspace deploy [flags]",
    flags=["--config", "/Users/yoda/outreach/force/devspace.yaml", "--namespace", "force--bento1a", "--no-warn", "true"],
)

BEFORE = Event(hook="before:deploy", execution_id=EXECUTION_ID, status="info", command=_COMMAND, timestamp=1651388142703)
AFTER = Event(hook="after:deploy", execution_id=EXECUTION_ID, status="info", command=_COMMAND, timestamp=1651388151749)


def _store(log_dir: Path) -> LogStore:
    store = LogStore(StoreOptions(log_dir=log_dir))
    store.init()
    return store


class _FlakyOpen:
    """Append opener that fails while `fail` is set."""

    def __init__(self) -> None:
        self.fail = False

    def __call__(self, path: Path):
        if self.fail:
            raise OSError("disk full")
        return path.open("a", encoding="utf-8")


def test_event_is_stored_under_its_key(log_dir: Path):
    store = _store(log_dir)
    tracker = EventTracker(processor=InMemoryProcessor(), store=store)

    stored = tracker.track(BEFORE)

    assert stored == BEFORE
    assert store.get(f"{EXECUTION_ID}_before:deploy", Event) == BEFORE


def test_matched_events_get_a_duration(log_dir: Path):
    store = _store(log_dir)
    tracker = EventTracker(processor=InMemoryProcessor(), store=store)

    tracker.track(BEFORE)
    stored = tracker.track(AFTER)

    assert stored.duration_ms == 9046
    after = store.get(f"{EXECUTION_ID}_after:deploy", Event)
    assert after is not None
    assert after.duration_ms == 9046
    before = store.get(f"{EXECUTION_ID}_before:deploy", Event)
    assert before is not None
    assert before.duration_ms is None
    # The caller's event is left untouched.
    assert AFTER.duration_ms is None


def test_unmatched_end_hook_has_no_duration(log_dir: Path):
    store = _store(log_dir)
    tracker = EventTracker(processor=InMemoryProcessor(), store=store)

    stored = tracker.track(AFTER)

    assert stored.duration_ms is None
    assert store.get(f"{EXECUTION_ID}_after:deploy") is not None
    assert "duration_ms" not in store.get(f"{EXECUTION_ID}_after:deploy")


def test_start_hook_from_another_execution_is_not_matched(log_dir: Path):
    store = _store(log_dir)
    tracker = EventTracker(processor=InMemoryProcessor(), store=store)

    tracker.track(BEFORE.model_copy(update={"execution_id": "other"}))
    assert tracker.track(AFTER).duration_ms is None


def test_events_without_execution_id_match_by_hook(log_dir: Path):
    store = _store(log_dir)
    tracker = EventTracker(processor=InMemoryProcessor(), store=store)

    tracker.track(Event(hook="start:sync", timestamp=1000))
    stored = tracker.track(Event(hook="stop:sync", timestamp=1500))

    assert stored.duration_ms == 500
    assert store.get("stop:sync")["duration_ms"] == 500


def test_scoped_end_hook_matches_scoped_start_hook(log_dir: Path):
    store = _store(log_dir)
    tracker = EventTracker(processor=InMemoryProcessor(), store=store)

    tracker.track(Event(hook="before:deploy:app", execution_id=EXECUTION_ID, timestamp=10))
    tracker.track(Event(hook="before:deploy:worker", execution_id=EXECUTION_ID, timestamp=20))

    assert tracker.track(Event(hook="error:deploy:app", execution_id=EXECUTION_ID, timestamp=45)).duration_ms == 35


def test_negative_duration_is_not_recorded(log_dir: Path):
    store = _store(log_dir)
    tracker = EventTracker(processor=InMemoryProcessor(), store=store)

    tracker.track(BEFORE)
    stored = tracker.track(AFTER.model_copy(update={"timestamp": BEFORE.timestamp - 1}))

    assert stored.duration_ms is None
    assert "duration_ms" not in store.get(f"{EXECUTION_ID}_after:deploy")


def test_unreadable_start_event_is_treated_as_missing(log_dir: Path):
    (log_dir / "1.log").write_text(
        f'{{"key":"{EXECUTION_ID}_before:deploy","data":{{"hook":"before:deploy","timestamp":"soon"}}}}\n',
        encoding="utf-8",
    )
    store = _store(log_dir)
    tracker = EventTracker(processor=InMemoryProcessor(), store=store)

    assert tracker.track(AFTER).duration_ms is None
    assert store.get(f"{EXECUTION_ID}_after:deploy") is not None


def test_can_use_restored_events(log_dir: Path):
    _store(log_dir).append(BEFORE)

    store = _store(log_dir)
    tracker = EventTracker(processor=InMemoryProcessor(), store=store)

    assert tracker.track(AFTER).duration_ms == 9046


def test_append_failure_is_not_raised(log_dir: Path, caplog: pytest.LogCaptureFixture):
    def _open_append(path: Path):
        raise OSError("disk full")

    store = LogStore(StoreOptions(log_dir=log_dir, open_append=_open_append))
    store.init()
    tracker = EventTracker(processor=InMemoryProcessor(), store=store)

    with caplog.at_level(logging.WARNING, logger="devspace.tracker"):
        assert tracker.track(BEFORE) == BEFORE

    assert "Failed to store before:deploy event" in caplog.text
    assert "disk full" in caplog.text


def test_flush_delivers_backlog_once(log_dir: Path):
    processor = InMemoryProcessor()
    store = _store(log_dir)
    tracker = EventTracker(processor=processor, store=store)

    tracker.track(BEFORE)
    tracker.track(AFTER)

    flushed = tracker.flush()
    assert len(flushed) == 2
    assert [r["hook"] for r in processor.last_batch] == ["before:deploy", "after:deploy"]
    assert processor.last_batch[1]["duration_ms"] == 9046

    assert tracker.flush() == []
    assert len(processor.batches) == 1
    assert list(store.get_unprocessed()) == []


def test_flush_failure_keeps_backlog_for_next_flush(log_dir: Path):
    processor = InMemoryProcessor(fail_with=ConnectionError("telefork down"))
    store = _store(log_dir)
    tracker = EventTracker(processor=processor, store=store)

    tracker.track(BEFORE)
    tracker.track(AFTER)

    with pytest.raises(ConnectionError):
        tracker.flush()
    first_attempt = processor.last_batch

    processor.fail_with = None
    assert tracker.flush() == first_attempt
    assert processor.batches[1] == first_attempt
    assert tracker.flush() == []


def test_flush_resends_records_left_unmarked_after_delivery(log_dir: Path):
    processor = InMemoryProcessor()
    open_append = _FlakyOpen()
    store = LogStore(StoreOptions(log_dir=log_dir, open_append=open_append))
    store.init()
    tracker = EventTracker(processor=processor, store=store)

    tracker.track(BEFORE)
    tracker.track(AFTER)

    open_append.fail = True
    with pytest.raises(StoreWriteError):
        tracker.flush()
    assert len(processor.batches) == 1

    open_append.fail = False
    assert tracker.flush() == processor.batches[0]
    assert processor.batches[1] == processor.batches[0]
    assert tracker.flush() == []


def test_flush_only_sends_events_tracked_since_last_flush(log_dir: Path):
    processor = InMemoryProcessor()
    tracker = EventTracker(processor=processor, store=_store(log_dir))

    tracker.track(BEFORE)
    tracker.flush()
    tracker.track(AFTER)
    tracker.flush()

    assert [[r["hook"] for r in batch] for batch in processor.batches] == [["before:deploy"], ["after:deploy"]]


def test_processed_marks_survive_restart(log_dir: Path):
    processor = InMemoryProcessor()
    EventTracker(processor=processor, store=_store(log_dir)).track(BEFORE)
    EventTracker(processor=processor, store=_store(log_dir)).flush()

    assert EventTracker(processor=processor, store=_store(log_dir)).flush() == []
    assert len(processor.batches) == 1


def test_flushed_records_carry_default_fields(log_dir: Path):
    processor = InMemoryProcessor()
    store = _store(log_dir)
    store.add_default_field("os.name", "linux")
    tracker = EventTracker(processor=processor, store=store)

    tracker.track(BEFORE)
    tracker.flush()

    assert processor.last_batch[0]["os"] == {"name": "linux"}
    assert processor.last_batch[0]["command"]["name"] == "deploy"


def test_event_bag_key_matches_event_key():
    assert EventBag(hook="after:deploy", execution_id=EXECUTION_ID).key() == AFTER.key()
    assert EventBag(hook="stop:sync").key() == "stop:sync"
    assert EventBag.from_fields({"a": {"b": 1}}).to_fields() == {"a.b": 1}
