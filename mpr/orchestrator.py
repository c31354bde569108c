"""Orchestrator — one concurrent pipeline per discovered repository."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from mpr.config import Settings
from mpr.discovery import discover
from mpr.models import Action, RepositoryHandle
from mpr.output import FAILURE_COLOR, OutputMultiplexer
from mpr.pipeline import PipelineReport, RepositoryPipeline
from mpr.runner import CommandRunner

logger = structlog.get_logger(__name__)

PipelineFactory = Callable[[RepositoryHandle, Action], RepositoryPipeline]


class CompletionSender:
    """The producing end handed to one pipeline. Sends exactly once."""

    def __init__(self, channel: CompletionChannel) -> None:
        self._channel = channel
        self.sent = False

    def send(self) -> None:
        if self.sent:
            raise RuntimeError("completion token already sent")
        self.sent = True
        self._channel._queue.put_nowait(None)


class CompletionChannel:
    """
    Many-producer, single-consumer fan-in of completion tokens.

    Every ``open()`` registers one producer. After ``close()`` no new
    producers may join, and ``drain()`` returns once every registered
    producer has sent its token.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[None] = asyncio.Queue()
        self._producers = 0
        self._closed = False

    @property
    def producers(self) -> int:
        return self._producers

    def open(self) -> CompletionSender:
        if self._closed:
            raise RuntimeError("completion channel is closed")
        self._producers += 1
        return CompletionSender(self)

    def close(self) -> None:
        self._closed = True

    async def drain(self) -> int:
        """Wait for one token per producer and return how many arrived."""
        if not self._closed:
            raise RuntimeError("drain() called before close()")
        received = 0
        while received < self._producers:
            await self._queue.get()
            received += 1
        return received


@dataclass
class RunResult:
    """Outcome of one orchestrator run. Never turned into an exit status."""

    reports: list[PipelineReport] = field(default_factory=list)
    completed: int = 0

    @property
    def repositories(self) -> int:
        return len(self.reports)

    @property
    def failed_commands(self) -> int:
        return sum(r.failed_commands for r in self.reports)


class Orchestrator:
    """
    Discover repositories and run a pipeline for each, all at once.

    Pipelines are launched while discovery is still walking the tree.
    ``run`` returns after every launched pipeline sent its completion token
    and every task it spawned has been joined. A pipeline that blows up is
    logged and reported; it never stops discovery or its siblings.
    """

    def __init__(
        self,
        output: OutputMultiplexer,
        settings: Settings | None = None,
        runner: CommandRunner | None = None,
        pipeline_factory: PipelineFactory | None = None,
        discover_fn: Callable[[Path], Iterable[RepositoryHandle]] = discover,
    ) -> None:
        self.output = output
        self.settings = settings or Settings()
        self.runner = runner or CommandRunner(output, self.settings)
        self.pipeline_factory = pipeline_factory or self._default_pipeline
        self.discover_fn = discover_fn

    def _default_pipeline(self, repo: RepositoryHandle, action: Action) -> RepositoryPipeline:
        return RepositoryPipeline(repo, action, self.runner, self.output)

    async def run(self, root: Path | str, action: Action) -> RunResult:
        result = RunResult()
        channel = CompletionChannel()
        limit = self.settings.max_concurrency
        semaphore = asyncio.Semaphore(limit) if limit else None
        tasks: list[asyncio.Task[None]] = []

        logger.info("orchestrator.started", root=str(root), action=action.value, limit=limit)
        # Walk on a worker thread; os.walk blocks.
        walk = iter(self.discover_fn(Path(root)))
        while True:
            repo = await asyncio.to_thread(next, walk, None)
            if repo is None:
                break
            self.output.echo(f"Found repository: {repo.path}")
            sender = channel.open()
            tasks.append(
                asyncio.create_task(
                    self._run_pipeline(repo, action, sender, semaphore, result),
                    name=f"pipeline-{repo.display}",
                )
            )
            # Let the new pipeline start before walking further.
            await asyncio.sleep(0)
        channel.close()

        result.completed = await channel.drain()
        await asyncio.gather(*tasks)

        logger.info(
            "orchestrator.finished",
            repositories=result.repositories,
            failed_commands=result.failed_commands,
        )
        for report in result.reports:
            for step in report.progress.failed:
                self.output.echo(
                    f"Failed step in {report.repo.path}: {step.step} ({step.error})",
                    err=True,
                    color=FAILURE_COLOR,
                )
        self.output.echo(
            f"Processed {result.repositories} repositories, "
            f"{result.failed_commands} commands failed"
        )
        return result

    async def _run_pipeline(
        self,
        repo: RepositoryHandle,
        action: Action,
        sender: CompletionSender,
        semaphore: asyncio.Semaphore | None,
        result: RunResult,
    ) -> None:
        report = PipelineReport(repo=repo)
        try:
            pipeline = self.pipeline_factory(repo, action)
            report = pipeline.report
            async with semaphore if semaphore is not None else contextlib.nullcontext():
                await pipeline.run()
        except Exception as e:
            logger.exception("pipeline.crashed", repo=repo.display)
            report.error = repr(e)
            self.output.echo(
                f"Pipeline for {repo.path} stopped unexpectedly: {e}",
                err=True,
                color=FAILURE_COLOR,
            )
        finally:
            result.reports.append(report)
            sender.send()
