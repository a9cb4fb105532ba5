"""Runs one agent end-to-end in its own workspace and reports an AgentResult."""

from __future__ import annotations

import asyncio
import time

import structlog

from pangloss.adapters.git import GitClient
from pangloss.adapters.workspace import WorkspaceArena
from pangloss.agents.execution.registry import ProviderRegistry
from pangloss.agents.execution.validation import ValidationRunner
from pangloss.workflow.exceptions import AgentProcessFailed, GitCommandError, WorkspaceSetupFailed
from pangloss.workflow.models import AgentMetrics, AgentResult, AgentTask, BuildStatus

logger = structlog.get_logger()


def quality_proxy(lines_added: int, lines_removed: int) -> float:
    """Crude size-based quality score in [0, 100]."""
    return min(100.0, (lines_added + lines_removed) / 10)


class AgentInvocation:
    """Clone, generate, measure, validate and publish a single task.

    ``timeout`` bounds the whole invocation: every step gets only the time
    left on one shared deadline, and running out of it fails the agent with
    an ``AgentProcessFailed`` timeout error.

    ``invoke`` never raises: every failure becomes a failed AgentResult whose
    error names the stage that broke. Only cancellation propagates, after the
    workspace has been released.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        arena: WorkspaceArena,
        validator: ValidationRunner | None = None,
    ) -> None:
        self._registry = registry
        self._arena = arena
        self._validator = validator or ValidationRunner()

    async def invoke(self, task: AgentTask, timeout: float) -> AgentResult:
        started = time.monotonic()
        log = logger.bind(
            component="agent_invocation", agent_id=task.agent_id, branch=task.branch_name,
        )
        log.info("agent.invocation.started", provider=task.preset.provider, timeout=timeout)
        try:
            async with self._arena.acquire(task.agent_id) as workspace:
                result = await self._run_with_deadline(
                    task, timeout, workspace.path / "repo", started, log,
                )
        except asyncio.CancelledError:
            log.warning("agent.invocation.cancelled")
            raise
        except Exception as e:
            log.exception("agent.invocation.crashed")
            result = AgentResult.failure(
                task.agent_id,
                task.branch_name,
                f"Agent invocation failed: {e}",
                execution_time_ms=_elapsed_ms(started),
            )
        log.info(
            "agent.invocation.finished",
            success=result.success,
            pushed=result.pushed,
            error=result.error,
        )
        return result

    async def _run_with_deadline(self, task, timeout, repo_dir, started, log) -> AgentResult:
        loop = asyncio.get_running_loop()
        try:
            async with asyncio.timeout(timeout) as scope:
                return await self._run(
                    task, lambda: max(0.0, scope.when() - loop.time()), repo_dir, started, log,
                )
        except WorkspaceSetupFailed as e:
            log.warning("agent.workspace.setup_failed", error=str(e))
            return AgentResult.failure(
                task.agent_id,
                task.branch_name,
                f"WorkspaceSetupFailed: {e}",
                execution_time_ms=_elapsed_ms(started),
            )
        except AgentProcessFailed as e:
            log.warning("agent.generation.failed", error=str(e))
            error = str(e)
        except TimeoutError:
            log.warning("agent.invocation.timed_out", timeout=timeout)
            error = f"{task.agent_id} timed out after {timeout:g}s"
        return AgentResult.failure(
            task.agent_id,
            task.branch_name,
            f"AgentProcessFailed: {error}",
            build_status=BuildStatus.FAILED,
            execution_time_ms=_elapsed_ms(started),
        )

    async def _run(self, task, remaining, repo_dir, started, log) -> AgentResult:
        """Run the steps in order; ``remaining()`` is the time left on the deadline."""
        # 1. Workspace setup
        try:
            git = await GitClient.clone(
                task.repo_url, repo_dir, token=task.github_token or None, timeout=remaining(),
            )
            await git.create_branch(task.branch_name)
        except GitCommandError as e:
            raise WorkspaceSetupFailed(str(e)) from e

        # 2. Generation
        try:
            generator = self._registry.get_generator(task.preset.provider)
        except KeyError as e:
            raise AgentProcessFailed(e.args[0]) from e
        try:
            generation = await generator.generate(task, repo_dir, remaining())
        except Exception as e:
            raise AgentProcessFailed(f"{generator.name} crashed: {e}") from e
        if not generation.success:
            raise AgentProcessFailed(generation.output)

        # 3. Changes made by the agent, measured before validation touches the tree
        changed_paths, lines_added, lines_removed = await self._measure(git, log)

        # 4. Validation
        validation = await self._validator.validate(repo_dir, remaining())

        # 5. Publish
        pushed = await self._commit_and_push(git, task, log)

        return AgentResult(
            agent_id=task.agent_id,
            branch_name=task.branch_name,
            success=True,
            changed_paths=tuple(changed_paths),
            test_summary=validation.test_summary,
            build_status=validation.build_status,
            e2e_summary=validation.e2e_summary,
            metrics=AgentMetrics(
                files_changed=len(changed_paths),
                lines_added=lines_added,
                lines_removed=lines_removed,
                quality_score=quality_proxy(lines_added, lines_removed),
                execution_time_ms=_elapsed_ms(started),
            ),
            pushed=pushed,
        )

    async def _measure(self, git: GitClient, log) -> tuple[list[str], int, int]:
        try:
            await git.mark_untracked_intent_to_add()
            changed = await git.changed_files()
        except GitCommandError as e:
            log.warning("agent.changes.unavailable", error=str(e))
            return [], 0, 0
        try:
            added, removed = await git.diff_numstat()
        except GitCommandError as e:
            # Approximate from the file count when the diff cannot be read
            log.warning("agent.numstat.unavailable", error=str(e))
            added, removed = len(changed) * 10, 0
        return changed, added, removed

    async def _commit_and_push(self, git: GitClient, task: AgentTask, log) -> bool:
        try:
            await git.add_all()
            if await git.has_staged_changes():
                await git.commit(
                    f"feat: {task.feature_name}\n\nGenerated by {task.agent_id} agent"
                )
            await git.push(task.branch_name)
        except GitCommandError as e:
            log.warning("agent.push.failed", error=str(e))
            return False
        return True


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
