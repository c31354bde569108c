"""mpr: pull every repository under a directory and refresh its dependencies."""

__version__ = "0.1.0"

from mpr.config import Settings
from mpr.discovery import discover, is_git_repo
from mpr.managers import MANAGERS, detect_managers
from mpr.models import (
    Action,
    CommandOutcome,
    CommandSpec,
    DependencyManager,
    ManagerFamily,
    RepositoryHandle,
    StreamRole,
)
from mpr.orchestrator import CompletionChannel, Orchestrator
from mpr.output import OutputMultiplexer
from mpr.pipeline import PipelineReport, PipelineState, RepositoryPipeline
from mpr.runner import CommandRunner

__all__ = [
    "MANAGERS",
    "Action",
    "CommandOutcome",
    "CommandRunner",
    "CommandSpec",
    "CompletionChannel",
    "DependencyManager",
    "ManagerFamily",
    "Orchestrator",
    "OutputMultiplexer",
    "PipelineReport",
    "PipelineState",
    "RepositoryHandle",
    "RepositoryPipeline",
    "Settings",
    "StreamRole",
    "detect_managers",
    "discover",
    "is_git_repo",
]
