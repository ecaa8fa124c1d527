"""DevSpace hook event models.

DevSpace runs the plugin once per hook and describes the hook through
`DEVSPACE_PLUGIN_*` environment variables; DevEnv adds its own `DEVENV_*`
variables. `event_from_env` turns both into an `Event`, which is the record
type stored in the event log.
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from store import RecordDecodeError

EVENT_NAME = "devspace_hook"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utc_now() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(tz=timezone.utc)


def to_millis(ts: datetime) -> int:
    """Milliseconds since the Unix epoch for an aware datetime."""
    return (ts - _EPOCH) // timedelta(milliseconds=1)


def event_key(hook: str, execution_id: str | None = None) -> str:
    """Key under which a hook event is stored: `<execution_id>_<hook>` or just `<hook>`."""
    if not execution_id:
        return hook
    return f"{execution_id}_{hook}"


class _Model(BaseModel):
    # Stored data carries default fields (os.*, dev.*) that are not part of the event.
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)


class Command(_Model):
    """The DevSpace command that triggered the hook."""

    name: str = ""
    line: str = ""
    flags: list[str] = Field(default_factory=list)
    args: list[str] = Field(default_factory=list)


class Devenv(_Model):
    """DevEnv details passed down to DevSpace through the environment."""

    type: str = Field(default="", alias="runtime")
    bin: str = ""
    version: str = ""
    kind_bin: str = ""
    devspace_bin: str = ""
    dev_deployment_profile: str = ""
    deploy_version: str = ""
    deploy_image_source: str = ""
    deploy_image_registry: str = ""
    deploy_dev_image_registry: str = ""
    deploy_box_image_registry: str = ""
    deploy_appname: str = ""

    deploy_use_devspace: bool = False
    dev_skip_portforwarding: bool = False
    dev_terminal: bool = False


class Event(_Model):
    """A single DevSpace hook invocation."""

    name: str = Field(default=EVENT_NAME, alias="event")
    hook: str = ""
    execution_id: str = ""

    error: str = ""
    status: str = ""

    command: Command | None = None
    devenv: Devenv | None = None

    # Milliseconds since epoch; used for duration computation.
    timestamp: int = 0
    timestamp_tag: datetime | None = Field(default=None, alias="@timestamp")
    # Only set once the matching start hook was found.
    duration_ms: int | None = None

    def key(self) -> str:
        return event_key(self.hook, self.execution_id)

    def to_fields(self) -> dict[str, Any]:
        """Flatten the event into dot-path fields, omitting empty optional values."""
        fields: dict[str, Any] = {"event": self.name, "hook": self.hook}
        if self.execution_id:
            fields["execution_id"] = self.execution_id
        if self.error:
            fields["error"] = self.error
        fields["status"] = self.status
        fields["timestamp"] = self.timestamp
        if self.timestamp_tag is not None:
            fields["@timestamp"] = self.timestamp_tag.isoformat()
        if self.duration_ms is not None:
            fields["duration_ms"] = self.duration_ms

        if self.command is not None:
            fields["command.name"] = self.command.name
            fields["command.line"] = self.command.line
            if self.command.flags:
                fields["command.flags"] = list(self.command.flags)
            if self.command.args:
                fields["command.args"] = list(self.command.args)

        if self.devenv is not None:
            for name, value in self.devenv.model_dump(by_alias=True).items():
                # Flags are always reported; strings only when set.
                if isinstance(value, bool) or value:
                    fields[f"devenv.{name}"] = value
        return fields

    @classmethod
    def from_fields(cls, data: Mapping[str, Any]) -> Event:
        """Build an event from nested stored data."""
        try:
            return cls.model_validate(dict(data))
        except ValidationError as exc:
            raise RecordDecodeError(f"stored data is not a valid event: {exc}") from exc


def _json_list(raw: str | None) -> list[str]:
    """Decode a JSON array of strings; anything else reads as empty."""
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        return []
    if not isinstance(value, list):
        return []
    return [str(v) for v in value]


def event_from_env(environ: Mapping[str, str] | None = None, *, now: datetime | None = None) -> Event:
    """Build the event for the current hook from environment variables.

    A non-empty `DEVSPACE_PLUGIN_ERROR` marks the event as `status="error"`;
    otherwise it is `"info"`. Malformed flag/arg JSON is ignored so the rest of
    the event is still recorded.
    """
    env = os.environ if environ is None else environ
    ts = now or utc_now()

    error = env.get("DEVSPACE_PLUGIN_ERROR", "")
    command = Command(
        name=env.get("DEVSPACE_PLUGIN_COMMAND", ""),
        line=env.get("DEVSPACE_PLUGIN_COMMAND_LINE", ""),
        flags=_json_list(env.get("DEVSPACE_PLUGIN_COMMAND_FLAGS")),
        args=_json_list(env.get("DEVSPACE_PLUGIN_COMMAND_ARGS")),
    )
    devenv = Devenv(
        type=env.get("DEVENV_TYPE", ""),
        bin=env.get("DEVENV_BIN", ""),
        version=env.get("DEVENV_VERSION", ""),
        kind_bin=env.get("DEVENV_KIND_BIN", ""),
        devspace_bin=env.get("DEVENV_DEVSPACE_BIN", ""),
        dev_deployment_profile=env.get("DEVENV_DEV_DEPLOYMENT_PROFILE", ""),
        deploy_version=env.get("DEVENV_DEPLOY_VERSION", ""),
        deploy_image_source=env.get("DEVENV_DEPLOY_IMAGE_SOURCE", ""),
        deploy_image_registry=env.get("DEVENV_DEPLOY_IMAGE_REGISTRY", ""),
        deploy_dev_image_registry=env.get("DEVENV_DEPLOY_DEV_IMAGE_REGISTRY", ""),
        deploy_box_image_registry=env.get("DEVENV_DEPLOY_BOX_IMAGE_REGISTRY", ""),
        deploy_appname=env.get("DEVENV_DEPLOY_APPNAME", ""),
        deploy_use_devspace=bool(env.get("DEVENV_DEPLOY_USE_DEVSPACE")),
        dev_skip_portforwarding=bool(env.get("DEVENV_DEV_SKIP_PORTFORWARDING")),
        dev_terminal=bool(env.get("DEVENV_DEV_TERMINAL")),
    )

    return Event(
        name=EVENT_NAME,
        hook=env.get("DEVSPACE_PLUGIN_EVENT", ""),
        execution_id=env.get("DEVSPACE_PLUGIN_EXECUTION_ID", ""),
        error=error,
        status="error" if error else "info",
        command=command,
        devenv=devenv,
        timestamp=to_millis(ts),
        timestamp_tag=ts,
    )
