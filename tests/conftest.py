"""Shared pytest fixtures for mpr tests."""

from __future__ import annotations

import io
import sys
from pathlib import Path

import pytest

from mpr.models import CommandOutcome, CommandSpec
from mpr.output import OutputMultiplexer


class RecordingOutput:
    """Stand-in for OutputMultiplexer that keeps every call."""

    def __init__(self) -> None:
        self.emitted: list[tuple[str, str, str | None, bool]] = []
        self.echoed: list[tuple[str, bool, str | None]] = []

    def emit(self, tag: str, text: str, color: str | None = None, *, err: bool = False) -> None:
        self.emitted.append((tag, text, color, err))

    def echo(self, text: str, *, err: bool = False, color: str | None = None) -> None:
        self.echoed.append((text, err, color))

    @property
    def echo_lines(self) -> list[str]:
        return [text for text, _, _ in self.echoed]


class FakeRunner:
    """Records invocations instead of starting processes."""

    def __init__(self, fail: set[str] | None = None, missing: set[str] | None = None) -> None:
        self.calls: list[tuple[Path, CommandSpec, str]] = []
        self.fail = fail or set()
        self.missing = missing or set()

    async def run(self, cwd: Path, spec: CommandSpec, repo: str) -> CommandOutcome:
        self.calls.append((cwd, spec, repo))
        if spec.program in self.missing:
            return CommandOutcome(command=spec, cwd=cwd, launched=False)
        returncode = 1 if spec.program in self.fail else 0
        return CommandOutcome(command=spec, cwd=cwd, returncode=returncode)

    def programs(self, repo: str | None = None) -> list[str]:
        return [spec.program for _, spec, r in self.calls if repo is None or r == repo]


def _python_command(code: str, prefix: str = "py") -> CommandSpec:
    return CommandSpec(sys.executable, ("-c", code), prefix)


@pytest.fixture
def python_command():
    """Build a command that runs *code* with the current interpreter."""
    return _python_command


@pytest.fixture
def recording_output() -> RecordingOutput:
    return RecordingOutput()


@pytest.fixture
def sinks() -> tuple[io.StringIO, io.StringIO]:
    return io.StringIO(), io.StringIO()


@pytest.fixture
def multiplexer(sinks) -> OutputMultiplexer:
    out, err = sinks
    return OutputMultiplexer(stdout=out, stderr=err, color=False)


@pytest.fixture
def make_repo(tmp_path: Path):
    """Factory: create a git working tree under tmp_path with marker files."""

    def _make(name: str, *markers: str) -> Path:
        repo = tmp_path / name if name != "." else tmp_path
        (repo / ".git").mkdir(parents=True, exist_ok=True)
        for marker in markers:
            (repo / marker).write_text("")
        return repo

    return _make


@pytest.fixture
def make_runner():
    """Factory for FakeRunner(fail=..., missing=...)."""
    return FakeRunner
