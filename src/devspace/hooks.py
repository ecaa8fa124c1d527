"""Matching of DevSpace hooks that come in start/end pairs."""

from __future__ import annotations

# Start/end hook combinations. Position 0 is the start hook; every later
# position is an end hook for it. Not every DevSpace hook is listed, only the
# ones that come in pairs (plugin hooks excluded). The first matching entry
# wins, so more specific prefixes must come before more general ones.
HOOK_COMBINATIONS: tuple[tuple[str, ...], ...] = (
    ("before:build", "after:build", "error:build"),
    ("before:deploy", "after:deploy"),
    ("before:deploy", "after:deploy", "error:deploy", "skip:deploy"),
    ("before:render", "after:render"),
    ("before:render", "after:render", "error:render"),
    ("before:purge", "after:purge"),
    ("before:purge", "after:purge", "error:purge"),
    ("before:resolveDependency", "after:resolveDependency", "error:resolveDependency"),
    ("before:buildDependency", "after:buildDependency", "error:buildDependency"),
    ("before:deployDependency", "after:deployDependency", "error:deployDependency"),
    ("before:renderDependency", "after:renderDependency", "error:renderDependency"),
    ("before:purgeDependency", "after:purgeDependency", "error:purgeDependency"),
    ("before:configLoad", "after:configLoad", "error:configLoad"),
    ("start:sync", "stop:sync", "error:sync", "restart:sync"),
    ("before:initialSync", "after:initialSync", "error:initialSync"),
    ("start:portForwarding", "error:portForwarding", "stop:portForwarding"),
    ("start:reversePortForwarding", "error:reversePortForwarding", "stop:reversePortForwarding"),
    ("before:createPullSecrets", "after:createPullSecrets", "error:createPullSecrets"),
    ("devCommand:before:sync", "devCommand:after:sync"),
    ("devCommand:before:portForwarding", "devCommand:after:portForwarding"),
    ("devCommand:before:replacePods", "devCommand:after:replacePods"),
    ("devCommand:before:runPipeline", "devCommand:after:runPipeline"),
    ("devCommand:before:deployDependencies", "devCommand:after:deployDependencies"),
    ("devCommand:before:build", "devCommand:after:build"),
    ("devCommand:before:deploy", "devCommand:after:deploy"),
    ("devCommand:before:execute", "devCommand:after:execute", "devCommand:interrupt", "devCommand:error"),
    ("deployCommand:before:execute", "deployCommand:after:execute", "deployCommand:error", "deployCommand:interrupt"),
    ("purgeCommand:before:execute", "purgeCommand:after:execute", "purgeCommand:error", "purgeCommand:interrupt"),
    ("buildCommand:before:execute", "buildCommand:after:execute", "buildCommand:error", "buildCommand:interrupt"),
    ("command:before:execute", "command:after:execute", "command:error"),
)


def get_before_hook(hook: str) -> str:
    """Return the start hook paired with `hook`, or "" if there is none.

    - A start hook (or an unknown one) yields "".
    - An end hook (`after:deploy`, `error:deploy`) yields its start hook (`before:deploy`).
    - A scoped end hook (`after:deploy:app`) keeps its scope (`before:deploy:app`).
    """
    for combination in HOOK_COMBINATIONS:
        start = combination[0]
        for end in combination[1:]:
            if hook.startswith(end):
                return start + hook[len(end):]
    return ""
