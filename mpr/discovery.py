"""Walk a directory tree and yield the git repositories in it."""

from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path

import structlog

from mpr.models import RepositoryHandle

logger = structlog.get_logger(__name__)

GIT_DIR = ".git"


def is_git_repo(path: Path) -> bool:
    """True for a working tree (``.git`` dir or gitfile) or a bare repository."""
    if (path / GIT_DIR).exists():
        return True
    return (
        (path / "HEAD").is_file() and (path / "objects").is_dir() and (path / "refs").is_dir()
    )


def _skip_entry(error: OSError) -> None:
    logger.debug("discovery.unreadable", path=error.filename, error=error.strerror)


def discover(root: Path | str) -> Iterator[RepositoryHandle]:
    """Lazily yield every git repository under *root*, *root* included.

    Unreadable directories are skipped. Nested repositories are reported
    too; only ``.git`` metadata directories are not descended into.
    """
    root = Path(root).resolve()
    for dirpath, dirnames, _ in os.walk(root, onerror=_skip_entry):
        current = Path(dirpath)
        dirnames[:] = sorted(d for d in dirnames if d != GIT_DIR)
        if is_git_repo(current):
            yield RepositoryHandle(path=current, relative=current.relative_to(root))
