"""Client for the Telefork telemetry ingestion service.

Telefork accepts a JSON array of events in a single POST and answers
`201 Created` on success. Transient failures (429, 5xx, transport errors) are
retried with exponential backoff; whatever is left is raised to the caller.
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Mapping, Sequence
from typing import Any

import requests  # type: ignore

from config import TeleforkConfig

logger = logging.getLogger(__name__)


class TeleforkHttpError(RuntimeError):
    """HTTP-level error returned by Telefork."""

    def __init__(self, *, status_code: int, body: str | None):
        """Create an error capturing HTTP status code and response body (if any)."""
        self.status_code = status_code
        self.body = body
        super().__init__(f"Telefork HTTP {status_code}: {body}")


class TeleforkClient:
    """Sends event batches to Telefork.

    Every request carries the client headers Telefork uses to attribute
    events: `X-OUTREACH-CLIENT-APP-ID` (application name) and
    `X-OUTREACH-CLIENT-LOGGING` (API key).
    """

    def __init__(self, config: TeleforkConfig, *, session: requests.Session | None = None):
        """Create a client using the given endpoint, credentials and retry tuning."""
        self.config = config
        self.url: str = config.url
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Content-Type": "application/json",
                "X-OUTREACH-CLIENT-LOGGING": config.api_key,
                "X-OUTREACH-CLIENT-APP-ID": config.app_name,
            }
        )

    def send_events(self, events: Sequence[Mapping[str, Any]]) -> None:
        """POST a batch of events; raises when the batch was not accepted."""
        payload = [dict(e) for e in events]
        self._send_with_retries(payload)

    def _send_request(self, payload: list[dict[str, Any]]) -> None:
        """Send the batch once.

        Raises:
        - `TeleforkHttpError` for any status other than 201
        - `requests.RequestException` for transport errors
        """
        resp = self.session.post(self.url, json=payload, timeout=self.config.timeout)
        if resp.status_code == 201:
            return
        raise TeleforkHttpError(status_code=resp.status_code, body=resp.text or None)

    def _send_with_retries(self, payload: list[dict[str, Any]]) -> None:
        """Send a batch, retrying transient errors with backoff."""
        attempt = 0
        start = time.monotonic()

        while True:
            try:
                self._send_request(payload)
                return
            except (TeleforkHttpError, requests.RequestException) as exc:
                attempt += 1
                if not _is_retryable_error(exc):
                    raise
                if attempt >= self.config.max_attempt:
                    raise

                delay = self.config.base_delay * (self.config.backoff_multiplier ** (attempt - 1))
                delay += random.uniform(0.0, delay * 0.1)  # small jitter

                if (time.monotonic() - start) + delay > self.config.max_delay:
                    raise
                logger.debug("Telefork attempt %d failed (%s); retrying in %.2fs", attempt, exc, delay)
                time.sleep(delay)

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self.session.close()


def _is_retryable_error(exc: BaseException) -> bool:
    """Return True if the error is transient."""
    if isinstance(exc, TeleforkHttpError):
        # Retry 429 and all 5xx.
        return exc.status_code == 429 or exc.status_code >= 500

    # Network/transport errors.
    return isinstance(exc, requests.RequestException)
