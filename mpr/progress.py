"""Step tracking for one repository pipeline."""

from __future__ import annotations

import time
from dataclasses import dataclass

import structlog

logger = structlog.get_logger(__name__)

RUNNING = "running"
COMPLETED = "completed"
FAILED = "failed"
SKIPPED = "skipped"


@dataclass
class StepProgress:
    step: str
    status: str = RUNNING
    started: float | None = None
    finished: float | None = None
    detail: str = ""
    error: str | None = None

    @property
    def duration(self) -> float | None:
        if self.started is None or self.finished is None:
            return None
        return round(self.finished - self.started, 2)


class StepTracker:
    """Record the steps a pipeline ran and how each one ended."""

    def __init__(self, repo: str = "") -> None:
        self.repo = repo
        self.steps: list[StepProgress] = []
        self._open: dict[str, StepProgress] = {}

    def start_step(self, step: str) -> None:
        p = StepProgress(step=step, started=time.monotonic())
        self.steps.append(p)
        self._open[step] = p

    def complete_step(self, step: str) -> None:
        self._finish(step, COMPLETED)

    def fail_step(self, step: str, error: str) -> None:
        self._finish(step, FAILED, error=error)

    def skip_step(self, step: str, reason: str) -> None:
        self.steps.append(StepProgress(step=step, status=SKIPPED, detail=reason))
        logger.debug("pipeline.step", repo=self.repo, step=step, status=SKIPPED, detail=reason)

    @property
    def failed(self) -> list[StepProgress]:
        """Steps that ended in failure, in the order they ran."""
        return [p for p in self.steps if p.status == FAILED]

    def _finish(self, step: str, status: str, error: str | None = None) -> None:
        p = self._open.pop(step, None)
        if p is None:
            return
        p.status = status
        p.finished = time.monotonic()
        p.error = error
        logger.debug(
            "pipeline.step",
            repo=self.repo,
            step=step,
            status=status,
            duration=p.duration,
            error=error,
        )
