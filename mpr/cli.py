"""CLI entry point: mpr.

Usage:
    mpr                     # pull + update dependencies under the current directory
    mpr ~/code pull         # only pull
    mpr ~/code update       # pull, then refresh dependencies
    mpr pull                # a lone action name is read as the action

The exit status is 0 whenever the scan ran, whatever the commands did;
failures show up as printed diagnostics.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import click

from mpr import __version__
from mpr.config import Settings
from mpr.core.logging import setup_logging
from mpr.exceptions import ConfigError
from mpr.models import Action
from mpr.orchestrator import Orchestrator
from mpr.output import OutputMultiplexer

BANNER = "MetaZeta"

_ACTIONS = [a.value for a in Action]


def _resolve_target(path: str | None, action: str | None) -> tuple[Path, Action]:
    """Sort out ``mpr [PATH] [ACTION]`` when only one argument was given."""
    if action is None and path in _ACTIONS and not Path(path).is_dir():
        path, action = None, path
    root = Path(path or ".")
    if not root.is_dir():
        raise click.BadParameter(f"Directory '{root}' does not exist.", param_hint="PATH")
    return root, Action(action) if action else Action.UPDATE


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("path", required=False)
@click.argument("action", required=False, type=click.Choice(_ACTIONS))
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
@click.option(
    "--max-concurrency",
    type=click.IntRange(min=0),
    default=None,
    help="Repositories processed at once (0 = no limit)",
)
@click.option(
    "--timeout",
    type=click.FloatRange(min=0),
    default=None,
    help="Seconds before a command is killed (0 = never)",
)
@click.option("--color/--no-color", default=None, help="Force colored output on or off")
@click.version_option(version=__version__, prog_name="mpr")
def main(
    path: str | None,
    action: str | None,
    verbose: bool,
    max_concurrency: int | None,
    timeout: float | None,
    color: bool | None,
) -> None:
    """Pull every git repository under PATH and refresh its dependencies.

    ACTION is 'pull' (pull only) or 'update' (pull, then update dependencies;
    the default).
    """
    setup_logging("DEBUG" if verbose else None)

    try:
        settings = Settings.from_env().merged(
            max_concurrency=max_concurrency,
            command_timeout=timeout,
            color=color,
        )
    except ConfigError as e:
        raise click.UsageError(str(e)) from e

    root, chosen = _resolve_target(path, action)

    output = OutputMultiplexer(color=settings.color)
    output.echo(BANNER)
    asyncio.run(Orchestrator(output, settings).run(root, chosen))


if __name__ == "__main__":
    main()
