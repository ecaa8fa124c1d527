"""Processor that delivers stored events to Telefork."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from config import TeleforkConfig

from .client import TeleforkClient


class TeleforkProcessor:
    """Wraps `TeleforkClient` for use by an `EventTracker`."""

    def __init__(self, config: TeleforkConfig, *, client: TeleforkClient | None = None) -> None:
        self._client = client or TeleforkClient(config)

    def process_records(self, records: Sequence[Mapping[str, Any]]) -> None:
        """Send the batch to Telefork."""
        self._client.send_events(records)

    def close(self) -> None:
        self._client.close()
