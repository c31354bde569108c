"""Output multiplexer — atomic, tagged, colored writes to stdout and stderr."""

from __future__ import annotations

import sys
import threading
from typing import TextIO

import click

# Colors per stream role and for pass/fail diagnostics.
STDOUT_COLOR = "green"
STDERR_COLOR = "yellow"
SUCCESS_COLOR = "green"
FAILURE_COLOR = "red"


def format_tag(repo: str, prefix: str) -> str:
    """``[<relative-repository-path>][<logical-prefix>]``"""
    return f"[{repo}][{prefix}]"


def _isatty(stream: TextIO) -> bool:
    try:
        return stream.isatty()
    except (AttributeError, ValueError):
        return False


class _Sink:
    """One output destination with its own lock."""

    def __init__(self, stream: TextIO, color: bool) -> None:
        self.stream = stream
        self.color = color
        self.lock = threading.Lock()

    def write_line(self, text: str, fg: str | None) -> None:
        if self.color and fg:
            text = click.style(text, fg=fg)
        with self.lock:
            self.stream.write(text + "\n")
            self.stream.flush()


class OutputMultiplexer:
    """
    Serialize writes coming from many concurrent stream readers.

    stdout and stderr are independent sinks, each with its own lock, so a
    line written to one never waits on the other. Within a sink every call
    writes one complete, newline-terminated line (color codes included)
    before the next call may write.

    Ordering across calls is whatever order the callers arrive in.
    """

    def __init__(
        self,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
        color: bool | None = None,
    ) -> None:
        out = stdout if stdout is not None else sys.stdout
        err = stderr if stderr is not None else sys.stderr
        self._out = _Sink(out, _isatty(out) if color is None else color)
        self._err = _Sink(err, _isatty(err) if color is None else color)

    def emit(self, tag: str, text: str, color: str | None = None, *, err: bool = False) -> None:
        """Write ``<tag> <text>`` as one atomic line."""
        self._sink(err).write_line(f"{tag} {text}", color)

    def echo(self, text: str, *, err: bool = False, color: str | None = None) -> None:
        """Write an untagged diagnostic line under the same sink lock."""
        self._sink(err).write_line(text, color)

    def _sink(self, err: bool) -> _Sink:
        return self._err if err else self._out
