"""Dependency manager detection from marker files."""

from __future__ import annotations

from pathlib import Path

import structlog

from mpr.models import CommandSpec, DependencyManager, ManagerFamily

logger = structlog.get_logger(__name__)

# Ordered by family, then by priority within the family. Within a family
# the first marker found wins; families are independent of each other.
MANAGERS: list[DependencyManager] = [
    DependencyManager(
        "npm", ManagerFamily.NODE, "package-lock.json", CommandSpec("npm", ("install",), "npm")
    ),
    DependencyManager(
        "Yarn", ManagerFamily.NODE, "yarn.lock", CommandSpec("yarn", ("install",), "Yarn")
    ),
    DependencyManager(
        "pnpm", ManagerFamily.NODE, "pnpm-lock.yaml", CommandSpec("pnpm", ("install",), "pnpm")
    ),
    DependencyManager(
        "Rust", ManagerFamily.RUST, "Cargo.lock", CommandSpec("cargo", ("update",), "Cargo")
    ),
    DependencyManager(
        "Pipenv", ManagerFamily.PYTHON, "Pipfile", CommandSpec("pipenv", ("install",), "Pipenv")
    ),
    DependencyManager(
        "Poetry", ManagerFamily.PYTHON, "poetry.lock", CommandSpec("poetry", ("update",), "Poetry")
    ),
    DependencyManager(
        "pip",
        ManagerFamily.PYTHON,
        "requirements.txt",
        CommandSpec("pip", ("install", "-r", "requirements.txt"), "pip"),
    ),
]


def detect_managers(
    repo_path: Path, managers: list[DependencyManager] | None = None
) -> list[DependencyManager]:
    """Return the managers whose marker file exists in *repo_path*.

    At most one manager per family is returned, in the order of *managers*.
    Only marker presence matters, so repeated calls on an unchanged tree
    give the same answer.
    """
    matched: list[DependencyManager] = []
    seen: set[ManagerFamily] = set()
    for manager in MANAGERS if managers is None else managers:
        if manager.family in seen:
            continue
        if (repo_path / manager.marker).exists():
            logger.debug(
                "managers.detected",
                repo=str(repo_path),
                manager=manager.name,
                marker=manager.marker,
            )
            matched.append(manager)
            seen.add(manager.family)
    return matched
