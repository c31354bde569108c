"""Data models shared by discovery, pipelines and the command runner."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class Action(str, Enum):
    """What every pipeline does with its repository."""

    PULL = "pull"
    UPDATE = "update"

    @property
    def updates_dependencies(self) -> bool:
        return self is Action.UPDATE


class StreamRole(str, Enum):
    STDOUT = "stdout"
    STDERR = "stderr"


class ManagerFamily(str, Enum):
    """Ecosystems whose managers are mutually exclusive within a repository."""

    NODE = "node"
    RUST = "rust"
    PYTHON = "python"


@dataclass(frozen=True)
class RepositoryHandle:
    """A discovered version-control root.

    ``path`` is absolute; ``relative`` is relative to the scan root and is
    only used for display.
    """

    path: Path
    relative: Path

    @property
    def display(self) -> str:
        text = self.relative.as_posix()
        return text if text not in ("", ".") else "."


@dataclass(frozen=True)
class CommandSpec:
    """One external command: program, its arguments and the log prefix.

    ``failure`` optionally replaces the generic failure line; ``{cwd}`` in it
    is filled with the working directory.
    """

    program: str
    args: tuple[str, ...] = ()
    prefix: str = ""
    failure: str = ""

    @property
    def argv(self) -> list[str]:
        return [self.program, *self.args]

    @property
    def label(self) -> str:
        return self.prefix or self.program


@dataclass(frozen=True)
class DependencyManager:
    """A dependency manager recognised by its marker file."""

    name: str
    family: ManagerFamily
    marker: str
    command: CommandSpec


@dataclass
class CommandOutcome:
    """How one command invocation ended. Output is streamed, never kept."""

    command: CommandSpec
    cwd: Path
    returncode: int | None = None
    launched: bool = True
    timed_out: bool = False
    read_errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.launched and not self.timed_out and self.returncode == 0
