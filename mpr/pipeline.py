"""Per-repository pipeline: pull, then optionally refresh dependencies."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

import structlog

from mpr.managers import MANAGERS, detect_managers
from mpr.models import (
    Action,
    CommandOutcome,
    CommandSpec,
    DependencyManager,
    RepositoryHandle,
)
from mpr.output import OutputMultiplexer
from mpr.progress import StepTracker
from mpr.runner import CommandRunner

logger = structlog.get_logger(__name__)

PULL_COMMAND = CommandSpec("git", ("pull",), "Git", failure="Failed to pull {cwd}")


class PipelineState(str, Enum):
    START = "start"
    PULLED = "pulled"
    DEPENDENCIES_CHECKED = "dependencies_checked"
    DONE = "done"


@dataclass
class PipelineReport:
    """What one pipeline did. Built up while it runs."""

    repo: RepositoryHandle
    outcomes: list[CommandOutcome] = field(default_factory=list)
    states: list[PipelineState] = field(default_factory=list)
    progress: StepTracker = field(init=False)
    error: str | None = None

    def __post_init__(self) -> None:
        self.progress = StepTracker(self.repo.display)

    @property
    def state(self) -> PipelineState | None:
        return self.states[-1] if self.states else None

    @property
    def failed_commands(self) -> int:
        return len(self.progress.failed)


class RepositoryPipeline:
    """
    Run the steps of one repository in order.

    PULL:   START -> pull -> PULLED -> DONE
    UPDATE: START -> pull -> PULLED -> dependencies -> DEPENDENCIES_CHECKED -> DONE

    A failed pull does not stop the dependency step; every step is
    attempted once and failures only show up as diagnostics.
    """

    def __init__(
        self,
        repo: RepositoryHandle,
        action: Action,
        runner: CommandRunner,
        output: OutputMultiplexer,
        managers: list[DependencyManager] | None = None,
    ) -> None:
        self.repo = repo
        self.action = action
        self.runner = runner
        self.output = output
        self.managers = MANAGERS if managers is None else managers
        self.report = PipelineReport(repo=repo)

    async def run(self) -> PipelineReport:
        self._enter(PipelineState.START)
        await self._pull()
        self._enter(PipelineState.PULLED)
        if self.action.updates_dependencies:
            await self._update_dependencies()
            self._enter(PipelineState.DEPENDENCIES_CHECKED)
        self._enter(PipelineState.DONE)
        return self.report

    async def _pull(self) -> None:
        self.output.echo(f"Pulling repository at {self.repo.path}")
        await self._invoke("pull", PULL_COMMAND)

    async def _update_dependencies(self) -> None:
        path = self.repo.path
        self.output.echo(f"Updating dependencies for {path}")
        found = detect_managers(path, self.managers)
        if not found:
            self.output.echo(f"No recognized dependency manager found for {path}")
            self.report.progress.skip_step("dependencies", "no recognized manager")
            return
        for manager in found:
            self.output.echo(f"Detected {manager.name} dependencies in {path / manager.marker}")
            await self._invoke(f"update:{manager.name}", manager.command)

    async def _invoke(self, step: str, spec: CommandSpec) -> CommandOutcome:
        tracker = self.report.progress
        tracker.start_step(step)
        outcome = await self.runner.run(self.repo.path, spec, self.repo.display)
        self.report.outcomes.append(outcome)
        if outcome.success:
            tracker.complete_step(step)
        elif not outcome.launched:
            tracker.fail_step(step, "launch failed")
        elif outcome.timed_out:
            tracker.fail_step(step, "timed out")
        else:
            tracker.fail_step(step, f"exit status {outcome.returncode}")
        return outcome

    def _enter(self, state: PipelineState) -> None:
        self.report.states.append(state)
        logger.debug("pipeline.state", repo=self.repo.display, state=state.value)
