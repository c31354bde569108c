"""Custom exceptions for mpr."""

from __future__ import annotations


class MprError(Exception):
    """Base exception for all mpr errors."""


class ConfigError(MprError):
    """Raised when a configuration value cannot be parsed."""

    def __init__(self, key: str, value: str, reason: str):
        self.key = key
        self.value = value
        super().__init__(f"Invalid value for {key}: {value!r} ({reason})")


class CommandLaunchError(MprError):
    """Raised when an external command cannot be started at all."""

    def __init__(self, program: str, cwd: str, cause: OSError):
        self.program = program
        self.cwd = cwd
        self.cause = cause
        reason = cause.strerror or str(cause)
        super().__init__(f"Failed to launch {program} in {cwd}: {reason}")
