"""Tests for single-agent invocation against a local remote."""

from __future__ import annotations

import asyncio

import pytest

from pangloss.adapters.workspace import WorkspaceArena
from pangloss.agents.execution.mocks import (
    CrashingGenerator,
    FailingGenerator,
    HangingGenerator,
    MockGenerator,
    MockValidationRunner,
)
from pangloss.agents.execution.registry import ProviderRegistry
from pangloss.agents.execution.validation import JsonResultParser, ValidationOutcome, ValidationRunner
from pangloss.execution.convenience import create_test_registry
from pangloss.execution.coordinator import ParallelCoordinator
from pangloss.execution.invocation import AgentInvocation, quality_proxy
from pangloss.workflow.models import BuildStatus, E2ESummary, TestSummary


def reject_pushes(remote) -> None:
    hook = remote.path / "hooks" / "pre-receive"
    hook.write_text("#!/bin/sh\necho 'pushes disabled' >&2\nexit 1\n")
    hook.chmod(0o755)


@pytest.fixture
def arena(tmp_path):
    return WorkspaceArena(tmp_path / "arena", run_id="run")


def make_invocation(arena, generator=None, validator=None, registry=None):
    return AgentInvocation(
        registry or create_test_registry(generator or MockGenerator()),
        arena,
        validator or MockValidationRunner(),
    )


class TestQualityProxy:
    def test_scales_and_caps(self):
        assert quality_proxy(30, 20) == 5.0
        assert quality_proxy(2000, 0) == 100.0
        assert quality_proxy(0, 0) == 0.0


class TestSuccessfulInvocation:
    async def test_generates_measures_validates_and_pushes(self, arena, remote, make_task):
        generator = MockGenerator(files={"src/login.py": "a = 1\nb = 2\n", "app.py": "def main():\n    return 2\n"})
        validator = MockValidationRunner(test_summary=TestSummary(passed=3, failed=1, total=4))
        task = make_task(repo_url=remote.url)

        result = await make_invocation(arena, generator, validator).invoke(task, timeout=60)

        assert result.success is True
        assert result.error is None
        assert result.pushed is True
        assert set(result.changed_paths) == {"app.py", "src/login.py"}
        assert result.metrics.files_changed == 2
        assert (result.metrics.lines_added, result.metrics.lines_removed) == (3, 1)
        assert result.metrics.quality_score == pytest.approx(0.4)
        assert result.metrics.execution_time_ms >= 0
        assert result.test_summary.passed == 3
        assert result.build_status is BuildStatus.SUCCESS

        assert task.branch_name == "widgets/login/claude-sonnet"
        assert remote.show(task.branch_name, "src/login.py") == "a = 1\nb = 2\n"
        assert remote.log(task.branch_name)[0] == "feat: login"
        assert generator.call_count == 1
        assert generator.last_task is task
        assert len(validator.validated) == 1

    async def test_workspace_released(self, arena, remote, make_task):
        await make_invocation(arena).invoke(make_task(repo_url=remote.url), timeout=60)
        assert not (arena.root / "workspaces" / "claude-sonnet").exists()

    async def test_measured_before_validation(self, arena, remote, make_task):
        class BuildingValidator:
            async def validate(self, workdir, timeout):
                (workdir / "dist.js").write_text("built\n")
                return ValidationOutcome(TestSummary(), BuildStatus.SUCCESS, E2ESummary())

        result = await make_invocation(arena, validator=BuildingValidator()).invoke(
            make_task(repo_url=remote.url), timeout=60,
        )
        assert result.changed_paths == ("generated_claude-sonnet.txt",)

    async def test_no_changes_still_succeeds(self, arena, remote, make_task):
        task = make_task(repo_url=remote.url)
        result = await make_invocation(arena, MockGenerator(files={})).invoke(task, timeout=60)
        assert result.success is True
        assert result.changed_paths == ()
        assert result.metrics.quality_score == 0.0
        assert task.branch_name in remote.branches()

    async def test_push_failure_is_degraded_success(self, arena, remote, make_task):
        reject_pushes(remote)
        task = make_task(repo_url=remote.url)
        result = await make_invocation(arena).invoke(task, timeout=60)
        assert result.success is True
        assert result.pushed is False
        assert task.branch_name not in remote.branches()


class TestFailedInvocation:
    async def test_generation_failure(self, arena, remote, make_task):
        task = make_task(repo_url=remote.url)
        result = await make_invocation(arena, FailingGenerator("codex failed with code 2")).invoke(task, timeout=60)
        assert result.success is False
        assert result.error == "AgentProcessFailed: codex failed with code 2"
        assert result.build_status is BuildStatus.FAILED
        assert result.changed_paths == ()
        assert task.branch_name not in remote.branches()

    async def test_generator_crash(self, arena, remote, make_task):
        result = await make_invocation(arena, CrashingGenerator()).invoke(make_task(repo_url=remote.url), timeout=60)
        assert result.success is False
        assert result.error == "AgentProcessFailed: crashing_generator crashed: generator exploded"

    async def test_unknown_provider(self, arena, remote, make_task):
        invocation = make_invocation(arena, registry=ProviderRegistry())
        result = await invocation.invoke(make_task(repo_url=remote.url), timeout=60)
        assert result.success is False
        assert result.error == "AgentProcessFailed: Unsupported LLM provider: anthropic"

    async def test_clone_failure(self, arena, tmp_path, make_task):
        generator = MockGenerator()
        task = make_task(repo_url=str(tmp_path / "missing.git"))
        result = await make_invocation(arena, generator).invoke(task, timeout=60)
        assert result.success is False
        assert result.error.startswith("WorkspaceSetupFailed: ")
        assert result.build_status is BuildStatus.NOT_RUN
        assert generator.call_count == 0

    async def test_cancellation_releases_workspace(self, arena, remote, make_task):
        generator = HangingGenerator()
        task = asyncio.create_task(
            make_invocation(arena, generator).invoke(make_task(repo_url=remote.url), timeout=60)
        )
        workspace = arena.root / "workspaces" / "claude-sonnet"
        await asyncio.wait_for(generator.started.wait(), timeout=30)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert generator.cancelled is True
        assert not workspace.exists()


class SlowGenerator(MockGenerator):
    def __init__(self, delay: float) -> None:
        super().__init__()
        self._delay = delay
        self.budgets: list[float] = []

    async def generate(self, task, workdir, timeout):
        self.budgets.append(timeout)
        await asyncio.sleep(self._delay)
        return await super().generate(task, workdir, timeout)


class SlowValidator(MockValidationRunner):
    def __init__(self, delay: float) -> None:
        super().__init__()
        self._delay = delay
        self.budgets: list[float] = []

    async def validate(self, workdir, timeout):
        self.budgets.append(timeout)
        await asyncio.sleep(self._delay)
        return await super().validate(workdir, timeout)


class TestSharedDeadline:
    async def test_steps_get_the_remaining_budget(self, arena, remote, make_task):
        generator = SlowGenerator(delay=0.3)
        validator = SlowValidator(delay=0)
        result = await make_invocation(arena, generator, validator).invoke(
            make_task(repo_url=remote.url), timeout=30,
        )
        assert result.success is True
        assert generator.budgets[0] <= 30
        assert validator.budgets[0] <= generator.budgets[0] - 0.3

    async def test_budget_spent_across_steps_fails_with_timeout(self, arena, remote, make_task):
        task = make_task(repo_url=remote.url)
        invocation = make_invocation(arena, SlowGenerator(delay=1.4), SlowValidator(delay=1.4))

        result = await invocation.invoke(task, timeout=2.0)

        assert result.success is False
        assert result.error == "AgentProcessFailed: claude-sonnet timed out after 2s"
        assert result.build_status is BuildStatus.FAILED
        assert task.branch_name not in remote.branches()
        assert not (arena.root / "workspaces" / "claude-sonnet").exists()

    async def test_coordinator_deadline_is_not_what_decides(self, arena, remote, make_task):
        invocation = make_invocation(arena, SlowGenerator(delay=1.4), SlowValidator(delay=1.4))
        coordinator = ParallelCoordinator(invocation, arena, grace_seconds=0.5)

        [result] = await coordinator.run([make_task(repo_url=remote.url)], timeout=2.0)

        assert result.success is False
        assert "timed out after 2s" in result.error


class TestBestEffortValidation:
    async def test_unparsable_test_summary_keeps_agent_successful(self, arena, remote, make_task):
        validator = ValidationRunner(
            parser=JsonResultParser(),
            test_commands=(("sh", "-c", """echo '{"passed": "n/a"}'"""),),
            build_commands=(("true",),),
            e2e_commands=(("pangloss-no-such-tool",),),
        )
        task = make_task(repo_url=remote.url)

        result = await make_invocation(arena, validator=validator).invoke(task, timeout=60)

        assert result.success is True
        assert result.changed_paths == ("generated_claude-sonnet.txt",)
        assert result.test_summary.total == 0
        assert task.branch_name in remote.branches()
