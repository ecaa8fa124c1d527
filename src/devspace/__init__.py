"""DevSpace hook tracking.

- `events`: the hook event model and environment scraping.
- `hooks`: which end hooks pair with which start hooks.
- `tracker`: duration matching and backlog delivery on top of the event log.
"""

from .events import Command, Devenv, Event, event_from_env, event_key
from .hooks import HOOK_COMBINATIONS, get_before_hook
from .processor import InMemoryProcessor, Processor
from .tracker import EventBag, EventTracker

__all__ = [
    "Command",
    "Devenv",
    "Event",
    "EventBag",
    "EventTracker",
    "HOOK_COMBINATIONS",
    "InMemoryProcessor",
    "Processor",
    "event_from_env",
    "event_key",
    "get_before_hook",
]
