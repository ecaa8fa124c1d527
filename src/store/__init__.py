"""Append-only keyed record log.

The store persists records as newline-delimited JSON, keeps an in-memory index
of the latest entry per key, and tracks whether each record has been processed
(delivered) yet.
"""

from .cursor import RecordCursor
from .encode import Recordable, RecordDecodeError, expand_fields, flatten_fields
from .log_store import (
    LogReplayError,
    LogStore,
    StoreError,
    StoreNotInitializedError,
    StoreOptions,
    StoreWriteError,
)

__all__ = [
    "LogReplayError",
    "LogStore",
    "RecordCursor",
    "RecordDecodeError",
    "Recordable",
    "StoreError",
    "StoreNotInitializedError",
    "StoreOptions",
    "StoreWriteError",
    "expand_fields",
    "flatten_fields",
]
