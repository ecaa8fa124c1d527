"""Command-line entrypoint for devtel.

DevSpace calls `devtel track` as a plugin hook. Each invocation:

- Loads configuration from environment.
- Replays the event log and registers the default fields.
- Tracks the event described by the `DEVSPACE_PLUGIN_*` environment.
- Flushes the unprocessed backlog to Telefork.

Telemetry must never break the command being tracked, so `track` always exits
with status 0; failures are logged instead.
"""

from __future__ import annotations

import argparse
import getpass
import logging
import os
import platform
import socket
import subprocess
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from config import Config, load_config
from devspace import EventTracker, event_from_env
from store import LogStore, StoreError, StoreOptions
from telefork import TeleforkProcessor

logger = logging.getLogger(__name__)


def _git_email() -> str:
    """Return `git config user.email`, or "" when git is unavailable."""
    try:
        out = subprocess.run(
            ["git", "config", "user.email"],
            capture_output=True,
            text=True,
            check=True,
            timeout=5,
        )
    except (OSError, subprocess.SubprocessError):
        return ""
    return out.stdout.strip()


def common_props(email_domain: str, environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Default fields attached to every stored event.

    OS name and architecture are always included. Developer identity (email,
    user, hostname, working directory) is only included for emails in
    `email_domain`.
    """
    env = os.environ if environ is None else environ
    props: dict[str, Any] = {
        "os.name": platform.system().lower(),
        "os.arch": platform.machine().lower(),
    }

    email = env.get("DEV_EMAIL") or _git_email()
    if email and email.endswith("@" + email_domain):
        props["dev.email"] = email
        try:
            props["os.user"] = getpass.getuser()
        except (KeyError, OSError):
            pass
        props["os.hostname"] = socket.gethostname()
        try:
            props["os.workDir"] = os.getcwd()
        except OSError:
            pass
    return props


def cmd_track(args: argparse.Namespace, cfg: Config) -> int:
    """Track the current hook event and flush the backlog."""
    log_dir = Path(args.log_dir) if args.log_dir else cfg.store.log_dir
    store = LogStore(StoreOptions(log_dir=log_dir))
    try:
        store.init()
    except StoreError as exc:
        logger.warning("Event log unavailable, skipping telemetry: %s", exc)
        return 0

    for name, value in common_props(cfg.email_domain).items():
        store.add_default_field(name, value)

    processor = TeleforkProcessor(cfg.telefork)
    tracker = EventTracker(processor=processor, store=store)
    try:
        event = tracker.track(event_from_env())
        logger.debug("Tracked %s (duration_ms=%s)", event.key(), event.duration_ms)

        if cfg.flush_on_track and not args.no_flush:
            try:
                tracker.flush()
            except Exception as exc:  # noqa: BLE001 - telemetry must not crash the host
                logger.warning("Failed to deliver events, will retry on next run: %s", exc)
    finally:
        processor.close()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="devtel", description="Developer telemetry for DevSpace hooks")
    parser.add_argument(
        "--log-level",
        default=None,
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: DEVTEL_LOG_LEVEL or WARNING)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    track = sub.add_parser("track", help="Track the current DevSpace hook event")
    track.add_argument("--log-dir", default=None, help="Event log directory (default: DEVTEL_LOG_DIR)")
    track.add_argument("--no-flush", action="store_true", help="Store the event without delivering the backlog")
    track.set_defaults(func=cmd_track)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        cfg = load_config()
    except ValueError as exc:
        logging.basicConfig(level=logging.WARNING)
        logger.warning("Invalid configuration, skipping telemetry: %s", exc)
        return 0

    logging.basicConfig(
        level=args.log_level or cfg.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    return args.func(args, cfg)


if __name__ == "__main__":
    raise SystemExit(main())
