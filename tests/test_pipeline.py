"""Tests for RepositoryPipeline — step order, detection and failure policy."""

from __future__ import annotations

from pathlib import Path

import pytest

from mpr.models import Action, RepositoryHandle
from mpr.pipeline import PULL_COMMAND, PipelineState, RepositoryPipeline


def _handle(path: Path, root: Path) -> RepositoryHandle:
    return RepositoryHandle(path=path, relative=path.relative_to(root))


@pytest.fixture
def run_pipeline(tmp_path: Path, recording_output):
    async def _run(repo: Path, action: Action, runner):
        pipeline = RepositoryPipeline(_handle(repo, tmp_path), action, runner, recording_output)
        return await pipeline.run()

    return _run


class TestPullOnly:
    @pytest.mark.asyncio
    async def test_only_git_pull(self, make_repo, make_runner, run_pipeline):
        repo = make_repo("A", "package-lock.json", "Cargo.lock")
        runner = make_runner()

        report = await run_pipeline(repo, Action.PULL, runner)

        assert runner.programs() == ["git"]
        assert runner.calls[0] == (repo, PULL_COMMAND, "A")
        assert report.states == [PipelineState.START, PipelineState.PULLED, PipelineState.DONE]

    @pytest.mark.asyncio
    async def test_pull_announced(self, make_repo, make_runner, run_pipeline, recording_output):
        repo = make_repo("A")

        await run_pipeline(repo, Action.PULL, make_runner())

        assert recording_output.echo_lines == [f"Pulling repository at {repo}"]


class TestPullAndUpdate:
    @pytest.mark.asyncio
    async def test_states(self, make_repo, make_runner, run_pipeline):
        report = await run_pipeline(make_repo("A", "yarn.lock"), Action.UPDATE, make_runner())

        assert report.states == [
            PipelineState.START,
            PipelineState.PULLED,
            PipelineState.DEPENDENCIES_CHECKED,
            PipelineState.DONE,
        ]
        assert report.state is PipelineState.DONE

    @pytest.mark.asyncio
    async def test_npm_and_cargo_both_run_once(self, make_repo, make_runner, run_pipeline):
        runner = make_runner()

        await run_pipeline(make_repo("A", "package-lock.json", "Cargo.lock"), Action.UPDATE, runner)

        assert runner.programs() == ["git", "npm", "cargo"]

    @pytest.mark.asyncio
    async def test_same_family_higher_priority_only(self, make_repo, make_runner, run_pipeline):
        runner = make_runner()

        await run_pipeline(make_repo("A", "yarn.lock", "pnpm-lock.yaml"), Action.UPDATE, runner)

        assert runner.programs() == ["git", "yarn"]

    @pytest.mark.asyncio
    async def test_pip_arguments(self, make_repo, make_runner, run_pipeline):
        runner = make_runner()

        await run_pipeline(make_repo("A", "requirements.txt"), Action.UPDATE, runner)

        _, spec, _ = runner.calls[-1]
        assert spec.argv == ["pip", "install", "-r", "requirements.txt"]
        assert spec.prefix == "pip"

    @pytest.mark.asyncio
    async def test_no_manager(self, make_repo, make_runner, run_pipeline, recording_output):
        repo = make_repo("A")
        runner = make_runner()

        report = await run_pipeline(repo, Action.UPDATE, runner)

        assert runner.programs() == ["git"]
        assert f"No recognized dependency manager found for {repo}" in recording_output.echo_lines
        assert report.progress.steps[-1].status == "skipped"

    @pytest.mark.asyncio
    async def test_detection_messages(self, make_repo, make_runner, run_pipeline, recording_output):
        repo = make_repo("B", "Cargo.lock", "poetry.lock")

        await run_pipeline(repo, Action.UPDATE, make_runner())

        assert recording_output.echo_lines == [
            f"Pulling repository at {repo}",
            f"Updating dependencies for {repo}",
            f"Detected Rust dependencies in {repo / 'Cargo.lock'}",
            f"Detected Poetry dependencies in {repo / 'poetry.lock'}",
        ]

    @pytest.mark.asyncio
    async def test_failed_pull_does_not_block_update(self, make_repo, make_runner, run_pipeline):
        runner = make_runner(fail={"git"})

        report = await run_pipeline(make_repo("A", "package-lock.json"), Action.UPDATE, runner)

        assert runner.programs() == ["git", "npm"]
        assert report.failed_commands == 1
        assert report.state is PipelineState.DONE
        assert report.progress.steps[0].status == "failed"
        assert report.progress.steps[0].error == "exit status 1"
        assert report.progress.steps[1].status == "completed"

    @pytest.mark.asyncio
    async def test_launch_failure_does_not_block_siblings(
        self, make_repo, make_runner, run_pipeline
    ):
        runner = make_runner(missing={"npm"})

        report = await run_pipeline(
            make_repo("A", "package-lock.json", "Cargo.lock"), Action.UPDATE, runner
        )

        assert runner.programs() == ["git", "npm", "cargo"]
        assert [o.success for o in report.outcomes] == [True, False, True]
        failed = [(p.step, p.error) for p in report.progress.failed]
        assert failed == [("update:npm", "launch failed")]
        assert report.failed_commands == 1

    @pytest.mark.asyncio
    async def test_second_run_detects_the_same(self, make_repo, make_runner, run_pipeline):
        repo = make_repo("A", "pnpm-lock.yaml", "Pipfile")
        first, second = make_runner(), make_runner()

        await run_pipeline(repo, Action.UPDATE, first)
        await run_pipeline(repo, Action.UPDATE, second)

        assert first.programs() == second.programs() == ["git", "pnpm", "pipenv"]

    @pytest.mark.asyncio
    async def test_tag_uses_relative_path(self, make_repo, make_runner, run_pipeline):
        runner = make_runner()

        await run_pipeline(make_repo("team/svc", "Cargo.lock"), Action.UPDATE, runner)

        assert {repo for _, _, repo in runner.calls} == {"team/svc"}
