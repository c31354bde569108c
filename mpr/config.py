"""Settings read from the environment, overridable from the CLI."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace

from mpr.exceptions import ConfigError

# Largest single line a stream reader accepts before giving up on that stream.
DEFAULT_STREAM_LIMIT = 1024 * 1024

_COLOR_MODES = {"auto": None, "always": True, "never": False}


def _env_int(key: str) -> int | None:
    raw = os.environ.get(key, "").strip()
    if not raw:
        return None
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(key, raw, "expected an integer") from None
    if value < 0:
        raise ConfigError(key, raw, "must not be negative")
    return value or None


def _env_float(key: str) -> float | None:
    raw = os.environ.get(key, "").strip()
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(key, raw, "expected a number of seconds") from None
    if value < 0:
        raise ConfigError(key, raw, "must not be negative")
    return value or None


def _env_color(key: str) -> bool | None:
    raw = os.environ.get(key, "auto").strip().lower() or "auto"
    if raw not in _COLOR_MODES:
        raise ConfigError(key, raw, "expected auto, always or never")
    return _COLOR_MODES[raw]


@dataclass(frozen=True)
class Settings:
    """Runtime knobs shared by the orchestrator, pipelines and runners.

    ``None`` for ``max_concurrency`` and ``command_timeout`` keeps the
    baseline behaviour: every pipeline runs at once and commands may run
    for as long as they like.
    """

    max_concurrency: int | None = None
    command_timeout: float | None = None
    color: bool | None = None
    stream_limit: int = DEFAULT_STREAM_LIMIT

    @classmethod
    def from_env(cls) -> Settings:
        """Read settings from the environment.

        Reads:
            MPR_MAX_CONCURRENCY — pipelines allowed to run at once (0 = unbounded)
            MPR_COMMAND_TIMEOUT — seconds before a command is killed (0 = never)
            MPR_COLOR           — auto | always | never (default: auto)
            MPR_STREAM_LIMIT    — longest accepted output line in bytes
        """
        return cls(
            max_concurrency=_env_int("MPR_MAX_CONCURRENCY"),
            command_timeout=_env_float("MPR_COMMAND_TIMEOUT"),
            color=_env_color("MPR_COLOR"),
            stream_limit=_env_int("MPR_STREAM_LIMIT") or DEFAULT_STREAM_LIMIT,
        )

    def merged(
        self,
        *,
        max_concurrency: int | None = None,
        command_timeout: float | None = None,
        color: bool | None = None,
    ) -> Settings:
        """Return a copy with every explicitly given value applied on top."""
        changes: dict[str, object] = {}
        if max_concurrency is not None:
            changes["max_concurrency"] = max_concurrency or None
        if command_timeout is not None:
            changes["command_timeout"] = command_timeout or None
        if color is not None:
            changes["color"] = color
        return replace(self, **changes)
