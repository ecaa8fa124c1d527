"""Configuration loading and validation.

This module is responsible for:

- Loading `.env` into the process environment (without overriding existing vars).
- Converting environment variables into strongly-typed Pydantic models.
- Validating values and providing actionable error messages.
"""

import os
import tempfile
from pathlib import Path
from typing import TypeVar

import dotenv
from pydantic import BaseModel, Field, field_validator

_T = TypeVar("_T", int, float)

DEFAULT_TELEFORK_ENDPOINT = "https://telefork.outreach.io/"


def default_log_dir() -> Path:
    """Return the well-known log directory used when none is configured."""
    return Path(tempfile.gettempdir()) / "devtel"


def _get_env_str(name: str, default: str) -> str:
    """Read a string env var, treating empty values as unset."""
    value = os.getenv(name, "").strip()
    return value or default


def _get_env_bool(name: str, default: bool) -> bool:
    """Read a boolean env var with a default."""
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    normalized = raw.strip().lower()
    if normalized in {"true", "1", "yes", "y", "on"}:
        return True
    if normalized in {"false", "0", "no", "n", "off"}:
        return False
    raise ValueError(f"{name} must be a boolean (true/false). Got: {raw!r}")


def _get_env_number(name: str, default: _T, cast: type[_T]) -> _T:
    """Read an int/float env var with a default."""
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be a {cast.__name__}. Got: {raw!r}") from exc


class StoreConfig(BaseModel):
    """Configuration for the append-only event log."""

    log_dir: Path = Field(default_factory=default_log_dir, description="Directory holding the log files")


class TeleforkConfig(BaseModel):
    """Configuration for delivering events to Telefork."""

    app_name: str = Field(default="devtel", description="Value of the X-OUTREACH-CLIENT-APP-ID header")
    api_key: str = Field(default="NOTSET", description="Telefork API key")
    endpoint: str = Field(default=DEFAULT_TELEFORK_ENDPOINT, description="Telefork base URL")

    # Optional tuning knobs
    timeout: float = Field(default=10.0, description="HTTP timeout per attempt (seconds)")
    max_attempt: int = Field(default=3, description="Max attempts per batch")
    base_delay: float = Field(default=0.5, description="Initial retry delay (seconds)")
    backoff_multiplier: float = Field(default=2.0, description="Exponential backoff multiplier")
    max_delay: float = Field(default=5.0, description="Max total delay before failing (seconds)")

    @property
    def url(self) -> str:
        """Get the URL batches are posted to."""
        return self.endpoint.rstrip("/") + "/"

    @field_validator("endpoint")
    def validate_endpoint(cls, v: str) -> str:
        """Validate the endpoint looks like an HTTP(S) URL."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Telefork endpoint must be an http(s) URL. Got: {v!r}")
        return v

    @field_validator("max_attempt")
    def validate_max_attempt(cls, v: int) -> int:
        """Validate at least one attempt is made."""
        if v < 1:
            raise ValueError(f"TELEFORK_MAX_ATTEMPT must be >= 1. Got: {v}")
        return v


class Config(BaseModel):
    """Top-level application configuration."""

    store: StoreConfig = Field(default_factory=StoreConfig, description="Event log configuration")
    telefork: TeleforkConfig = Field(default_factory=TeleforkConfig, description="Telefork configuration")

    log_level: str = Field(default="WARNING", description="Level for the process logger")
    email_domain: str = Field(default="outreach.io", description="Developer identity is recorded only for this domain")
    flush_on_track: bool = Field(default=True, description="Deliver the backlog after tracking an event")

    @field_validator("log_level")
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate the log level name."""
        normalized = v.strip().upper()
        if normalized not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"DEVTEL_LOG_LEVEL must be a logging level name. Got: {v!r}")
        return normalized


def load_config() -> Config:
    """Load application configuration from environment variables.

    Notes:
    - Calls `dotenv.load_dotenv()` so local `.env` values are visible to the process.
    - Every value has a default; telemetry must work without any setup.
    - Raises `ValueError` with actionable messages when a value cannot be parsed.
    """
    dotenv.load_dotenv()

    log_dir = os.getenv("DEVTEL_LOG_DIR", "").strip()
    store = StoreConfig(log_dir=Path(log_dir)) if log_dir else StoreConfig()

    telefork = TeleforkConfig(
        app_name=_get_env_str("DEVTEL_APP_NAME", "devtel"),
        api_key=_get_env_str("TELEFORK_API_KEY", "NOTSET"),
        endpoint=_get_env_str("OUTREACH_TELEFORK_ENDPOINT", DEFAULT_TELEFORK_ENDPOINT),
        timeout=_get_env_number("TELEFORK_TIMEOUT", 10.0, float),
        max_attempt=_get_env_number("TELEFORK_MAX_ATTEMPT", 3, int),
        base_delay=_get_env_number("TELEFORK_BASE_DELAY", 0.5, float),
        backoff_multiplier=_get_env_number("TELEFORK_BACKOFF_MULTIPLIER", 2.0, float),
        max_delay=_get_env_number("TELEFORK_MAX_DELAY", 5.0, float),
    )
    return Config(
        store=store,
        telefork=telefork,
        log_level=_get_env_str("DEVTEL_LOG_LEVEL", "WARNING"),
        email_domain=_get_env_str("DEVTEL_EMAIL_DOMAIN", "outreach.io"),
        flush_on_track=_get_env_bool("DEVTEL_FLUSH", True),
    )
