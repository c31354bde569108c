"""Run one external command while streaming its output line by line."""

from __future__ import annotations

import asyncio
from pathlib import Path

import structlog

from mpr.config import Settings
from mpr.exceptions import CommandLaunchError
from mpr.models import CommandOutcome, CommandSpec, StreamRole
from mpr.output import (
    FAILURE_COLOR,
    STDERR_COLOR,
    STDOUT_COLOR,
    SUCCESS_COLOR,
    OutputMultiplexer,
    format_tag,
)

logger = structlog.get_logger(__name__)

_DRAIN_CHUNK = 64 * 1024

# How long a killed command gets to release its pipes. A grandchild that
# inherited them may keep them open long after the child itself is gone.
KILL_GRACE = 1.0


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace").rstrip("\r\n")


def _kill(proc: asyncio.subprocess.Process) -> None:
    try:
        proc.kill()
    except ProcessLookupError:
        pass


class CommandRunner:
    """
    Run external commands with both output streams captured.

    Each invocation gets two reader tasks, one per stream. Every complete
    line is handed to the multiplexer tagged with the repository and the
    command prefix, stdout lines in one color, stderr lines in another.
    Exit status is reported as a plain diagnostic line and returned, never
    raised.
    """

    def __init__(self, output: OutputMultiplexer, settings: Settings | None = None) -> None:
        self.output = output
        self.settings = settings or Settings()

    async def run(self, cwd: Path, spec: CommandSpec, repo: str) -> CommandOutcome:
        """Run *spec* in *cwd*; *repo* is the display path used in the tag."""
        outcome = CommandOutcome(command=spec, cwd=cwd)
        log = logger.bind(repo=repo, program=spec.program)

        try:
            proc = await self._launch(cwd, spec)
        except CommandLaunchError as e:
            log.warning("command.launch_failed", error=str(e.cause))
            outcome.launched = False
            self.output.echo(str(e), err=True, color=FAILURE_COLOR)
            return outcome

        log.debug("command.started", pid=proc.pid, argv=spec.argv)
        tag = format_tag(repo, spec.label)
        readers = [
            asyncio.create_task(self._pump(proc.stdout, tag, StreamRole.STDOUT, outcome)),
            asyncio.create_task(self._pump(proc.stderr, tag, StreamRole.STDERR, outcome)),
        ]

        try:
            outcome.returncode = await asyncio.wait_for(
                proc.wait(), timeout=self.settings.command_timeout
            )
        except asyncio.TimeoutError:
            log.warning("command.timed_out", timeout=self.settings.command_timeout)
            outcome.timed_out = True
            _kill(proc)
            outcome.returncode = await self._reap(proc, readers, log)
        except asyncio.CancelledError:
            _kill(proc)
            await self._reap(proc, readers, log)
            raise

        for result in await asyncio.gather(*readers, return_exceptions=True):
            if isinstance(result, Exception):
                log.error("command.reader_crashed", error=repr(result))
                outcome.read_errors.append(repr(result))

        log.debug("command.finished", returncode=outcome.returncode, timed_out=outcome.timed_out)
        self._report(outcome)
        return outcome

    async def _reap(
        self,
        proc: asyncio.subprocess.Process,
        readers: list[asyncio.Task[None]],
        log: structlog.stdlib.BoundLogger,
    ) -> int | None:
        """Wait up to KILL_GRACE for a killed process and its readers, then let go."""
        waiter = asyncio.ensure_future(proc.wait())
        _, pending = await asyncio.wait([waiter, *readers], timeout=KILL_GRACE)
        if pending:
            log.warning("command.pipes_held", pending=len(pending))
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
        return proc.returncode

    async def _launch(self, cwd: Path, spec: CommandSpec) -> asyncio.subprocess.Process:
        try:
            return await asyncio.create_subprocess_exec(
                *spec.argv,
                cwd=str(cwd),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=self.settings.stream_limit,
            )
        except OSError as e:
            raise CommandLaunchError(spec.program, str(cwd), e) from e

    async def _pump(
        self,
        stream: asyncio.StreamReader | None,
        tag: str,
        role: StreamRole,
        outcome: CommandOutcome,
    ) -> None:
        """Forward *stream* line by line until EOF."""
        if stream is None:
            return
        err = role is StreamRole.STDERR
        color = STDERR_COLOR if err else STDOUT_COLOR
        while True:
            try:
                raw = await stream.readline()
            except ValueError as e:
                # Line longer than the stream limit: stop forwarding this stream.
                await self._abandon(stream, tag, role, outcome, e)
                return
            if not raw:
                return
            self.output.emit(tag, _decode(raw), color, err=err)

    async def _abandon(
        self,
        stream: asyncio.StreamReader,
        tag: str,
        role: StreamRole,
        outcome: CommandOutcome,
        error: Exception,
    ) -> None:
        logger.warning("command.read_failed", tag=tag, stream=role.value, error=str(error))
        outcome.read_errors.append(f"{role.value}: {error}")
        self.output.echo(
            f"{tag} Stopped reading {role.value}: {error}", err=True, color=FAILURE_COLOR
        )
        # Keep the pipe empty so the process can still run to completion.
        while await stream.read(_DRAIN_CHUNK):
            pass

    def _report(self, outcome: CommandOutcome) -> None:
        spec, cwd = outcome.command, outcome.cwd
        program = spec.program
        if outcome.timed_out:
            self.output.echo(
                f"Timed out running {program} in {cwd} after {self.settings.command_timeout}s",
                err=True,
                color=FAILURE_COLOR,
            )
        elif outcome.success:
            self.output.echo(f"Successfully ran {program} in {cwd}", color=SUCCESS_COLOR)
        else:
            if spec.failure:
                failed = spec.failure.format(cwd=cwd)
            else:
                failed = f"Failed to run {program} in {cwd}"
            self.output.echo(
                f"{failed} (exit status {outcome.returncode})",
                err=True,
                color=FAILURE_COLOR,
            )
