"""Append-only, keyed, file-backed record log.

Every append is written as one line of JSON to the active log file:

    {"key":"<key>","data":{...},"processed":true}

(`processed` is omitted while false). The file is opened, written and closed
on each append; nothing is held open between calls. An in-memory index maps
each key to its most recent entry, so the latest write for a key is the
authoritative one and older lines are kept only as history.

On `init()` the whole log directory is replayed to rebuild the index.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import time
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Any, TypeVar

from config import default_log_dir

from .cursor import RecordCursor
from .encode import Recordable, expand_fields

logger = logging.getLogger(__name__)

_R = TypeVar("_R", bound=Recordable)

OpenAppend = Callable[[Path], IO[str]]


class StoreError(RuntimeError):
    """Base class for log store failures."""


class StoreNotInitializedError(StoreError):
    """An operation was attempted before `LogStore.init()`."""


class LogReplayError(StoreError):
    """A persisted line could not be replayed (log corruption)."""

    def __init__(self, *, path: Path, line_number: int, reason: str) -> None:
        self.path = path
        self.line_number = line_number
        super().__init__(f"failed to restore {path}:{line_number}: {reason}")


class StoreWriteError(StoreError):
    """The active log file could not be opened or written."""


def _open_append(path: Path) -> IO[str]:
    return open(path, "a", encoding="utf-8")


@dataclass(frozen=True)
class StoreOptions:
    log_dir: Path | None = None
    # Injectable for tests; must return a writable text file-like object.
    open_append: OpenAppend = field(default=_open_append)


@dataclass
class _Entry:
    key: str
    data: dict[str, Any]
    processed: bool = False

    def to_json(self) -> str:
        payload: dict[str, Any] = {"key": self.key, "data": self.data}
        if self.processed:
            payload["processed"] = True
        return json.dumps(payload, separators=(",", ":"), default=str)


def _walk_log_files(root: Path) -> Iterator[Path]:
    """Yield every regular file below `root` in lexical order.

    Entries of a directory are visited sorted by name, descending into
    sub-directories at their sorted position. The order decides which line is
    "latest" for keys that appear in several files.
    """
    for child in sorted(root.iterdir(), key=lambda p: p.name):
        if child.is_dir():
            yield from _walk_log_files(child)
        elif child.is_file():
            yield child


def _parse_line(raw: str, *, path: Path, line_number: int) -> _Entry | None:
    """Parse a single persisted line; `None` means the line is skipped."""
    if not raw.strip():
        return None
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise LogReplayError(path=path, line_number=line_number, reason=f"invalid JSON ({exc.msg})") from exc
    if not isinstance(payload, dict):
        raise LogReplayError(path=path, line_number=line_number, reason="entry is not a JSON object")

    key = payload.get("key")
    data = payload.get("data")
    # Entries without a key or data are tolerated no-ops.
    if not key or data is None:
        return None
    if not isinstance(key, str):
        raise LogReplayError(path=path, line_number=line_number, reason="key is not a string")
    if not isinstance(data, dict):
        raise LogReplayError(path=path, line_number=line_number, reason="data is not a JSON object")
    return _Entry(key=key, data=data, processed=bool(payload.get("processed", False)))


def _lacks_trailing_newline(path: Path) -> bool:
    """True for a non-empty file whose last byte is not a newline."""
    try:
        with path.open("rb") as f:
            if f.seek(0, os.SEEK_END) == 0:
                return False
            f.seek(-1, os.SEEK_END)
            return f.read(1) != b"\n"
    except OSError as exc:
        raise StoreError(f"failed to inspect {path}: {exc}") from exc


class LogStore:
    """Append-only index of records persisted as newline-delimited JSON.

    Only one writer per log directory is supported. The store holds no lock;
    callers invoke it sequentially from a single thread.
    """

    def __init__(self, opts: StoreOptions | None = None) -> None:
        """Create a store; call `init()` before anything else."""
        opts = opts or StoreOptions()
        self._log_dir = Path(opts.log_dir) if opts.log_dir is not None else default_log_dir()
        self._open = opts.open_append
        self._log_path: Path | None = None
        # Set when the active file does not end with a newline.
        self._needs_newline = False

        self._entries: list[_Entry] = []
        # key -> position of the latest entry for that key (insertion ordered)
        self._index: dict[str, int] = {}
        self._default_fields: dict[str, Any] = {}

    @property
    def log_dir(self) -> Path:
        return self._log_dir

    @property
    def log_path(self) -> Path:
        """The file appends are written to."""
        return self._require_init()

    def __len__(self) -> int:
        """Number of entries in the history (replayed and appended)."""
        return len(self._entries)

    def init(self) -> None:
        """Replay every log file in the directory and pick the active file.

        The last file visited becomes the append target. With no files, a new
        `<unix seconds>.log` name is chosen; the file itself is created by the
        first append.

        Raises:
        - `StoreError` when the log directory cannot be created or read
        - `LogReplayError` for a malformed persisted line
        """
        self._entries = []
        self._index = {}
        self._log_path = None
        self._needs_newline = False

        try:
            self._log_dir.mkdir(parents=True, exist_ok=True)
            files = list(_walk_log_files(self._log_dir))
        except OSError as exc:
            raise StoreError(f"log directory {self._log_dir} is not usable: {exc}") from exc

        last: Path | None = None
        for path in files:
            self._restore(path)
            last = path

        self._needs_newline = last is not None and _lacks_trailing_newline(last)
        self._log_path = last or self._log_dir / f"{int(time.time())}.log"
        logger.debug(
            "Restored %d entries (%d keys) from %d files; appending to %s",
            len(self._entries),
            len(self._index),
            len(files),
            self._log_path,
        )

    def add_default_field(self, name: str, value: Any) -> None:
        """Register a dot-path field merged into every subsequent append."""
        self._default_fields[name] = value

    def append(self, record: Recordable) -> None:
        """Durably append a record and make it the latest entry for its key."""
        self._append(record, processed=False)

    def get(self, key: str, record_type: type[_R] | None = None) -> _R | dict[str, Any] | None:
        """Return the latest data stored under `key`, or `None` if absent.

        With `record_type`, the data is decoded via `record_type.from_fields`;
        decode failures raise `RecordDecodeError` rather than reading as absent.
        """
        self._require_init()
        pos = self._index.get(key)
        if pos is None:
            return None
        data = copy.deepcopy(self._entries[pos].data)
        if record_type is None:
            return data
        return record_type.from_fields(data)

    def get_all(self) -> RecordCursor:
        """Latest data per key, ordered by when each key was last written."""
        self._require_init()
        return RecordCursor([e.data for e in self._latest_entries()])

    def get_unprocessed(self) -> RecordCursor:
        """Like `get_all`, restricted to keys whose latest entry is unprocessed."""
        self._require_init()
        return RecordCursor([e.data for e in self._latest_entries() if not e.processed])

    def mark_processed(self, records: Iterable[Recordable]) -> None:
        """Re-append each record with `processed=True`.

        Stops at the first write failure; records before it stay marked.
        """
        self._require_init()
        for record in records:
            self._append(record, processed=True)

    def _latest_entries(self) -> list[_Entry]:
        return [self._entries[pos] for pos in sorted(self._index.values())]

    def _append(self, record: Recordable, *, processed: bool) -> None:
        path = self._require_init()
        key = record.key()
        if not key:
            raise ValueError("record key must be a non-empty string")

        entry = _Entry(key=key, data=expand_fields(self._default_fields, record.to_fields()), processed=processed)
        line = entry.to_json() + "\n"
        if self._needs_newline:
            line = "\n" + line
        try:
            with self._open(path) as f:
                f.write(line)
        except OSError as exc:
            raise StoreWriteError(f"failed to append to {path}: {exc}") from exc
        self._needs_newline = False

        self._index[key] = len(self._entries)
        self._entries.append(entry)

    def _restore(self, path: Path) -> None:
        try:
            with path.open("r", encoding="utf-8") as f:
                for line_number, raw in enumerate(f, start=1):
                    entry = _parse_line(raw, path=path, line_number=line_number)
                    if entry is None:
                        continue
                    self._index[entry.key] = len(self._entries)
                    self._entries.append(entry)
        except (OSError, UnicodeDecodeError) as exc:
            raise StoreError(f"failed to restore {path}: {exc}") from exc

    def _require_init(self) -> Path:
        if self._log_path is None:
            raise StoreNotInitializedError("LogStore.init() must be called first")
        return self._log_path
