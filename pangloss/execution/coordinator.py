"""Parallel coordinator: runs every agent task concurrently and collects results."""

from __future__ import annotations

import asyncio
import contextlib
from typing import Protocol, runtime_checkable

import structlog

from pangloss.adapters.workspace import WorkspaceArena
from pangloss.execution.artifacts import read_result_artifact, write_result_artifact
from pangloss.workflow.exceptions import ResultUnavailable
from pangloss.workflow.models import AgentResult, AgentTask

logger = structlog.get_logger()


@runtime_checkable
class AgentInvoker(Protocol):
    async def invoke(self, task: AgentTask, timeout: float) -> AgentResult: ...


class ParallelCoordinator:
    """Launches one invocation per task and waits for all of them.

    Each invocation runs as its own asyncio task under a hard deadline of
    ``timeout + grace_seconds``; the invocation is expected to enforce
    ``timeout`` itself, the deadline only catches invocations that do not.
    A slow or crashing task never affects its siblings.

    Results travel through the per-agent artifact files in the arena's
    results folder. The returned list is index-aligned with ``tasks``, and a
    task whose artifact is missing or unreadable is represented by a
    synthetic failure result.
    """

    def __init__(
        self,
        invoker: AgentInvoker,
        arena: WorkspaceArena,
        max_parallel: int | None = None,
        grace_seconds: float = 60.0,
    ) -> None:
        if max_parallel is not None and max_parallel < 1:
            raise ValueError(f"max_parallel must be at least 1, got {max_parallel}")
        self._invoker = invoker
        self._arena = arena
        self._max_parallel = max_parallel
        self._grace_seconds = grace_seconds
        self._log = logger.bind(component="coordinator", run_id=arena.run_id)

    async def run(self, tasks: list[AgentTask], timeout: float) -> list[AgentResult]:
        agent_ids = [t.agent_id for t in tasks]
        duplicates = sorted({a for a in agent_ids if agent_ids.count(a) > 1})
        if duplicates:
            raise ValueError(f"Duplicate agent ids in one run: {', '.join(duplicates)}")

        semaphore = asyncio.Semaphore(self._max_parallel) if self._max_parallel else None
        self._log.info(
            "coordinator.run.started",
            agents=agent_ids,
            timeout=timeout,
            max_parallel=self._max_parallel or len(tasks),
        )

        async def _run_one(task: AgentTask) -> None:
            path = self._arena.result_path(task.agent_id)
            path.unlink(missing_ok=True)
            async with semaphore if semaphore is not None else contextlib.nullcontext():
                async with asyncio.timeout(timeout + self._grace_seconds):
                    result = await self._invoker.invoke(task, timeout)
            write_result_artifact(path, result)

        outcomes = await asyncio.gather(
            *[_run_one(task) for task in tasks],
            return_exceptions=True,
        )
        for task, outcome in zip(tasks, outcomes):
            if isinstance(outcome, BaseException):
                # No artifact was written; collection substitutes a failure
                self._log.error(
                    "coordinator.agent.aborted",
                    agent_id=task.agent_id,
                    error=repr(outcome),
                )

        results = [self._collect(task) for task in tasks]
        self._log.info(
            "coordinator.run.finished",
            succeeded=sum(1 for r in results if r.success),
            total=len(results),
        )
        return results

    def _collect(self, task: AgentTask) -> AgentResult:
        try:
            return read_result_artifact(self._arena.result_path(task.agent_id), task.agent_id)
        except ResultUnavailable as e:
            self._log.warning("coordinator.result.unavailable", agent_id=task.agent_id, reason=e.reason)
            return AgentResult.failure(task.agent_id, task.branch_name, e.reason)
