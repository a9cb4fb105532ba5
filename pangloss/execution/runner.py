"""Core generation runner: orchestrates one end-to-end Pangloss run."""

from __future__ import annotations

import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

import structlog

from pangloss.adapters.github import PullRequestClient
from pangloss.adapters.workspace import WorkspaceArena, prune_runs
from pangloss.agents.execution.registry import ProviderRegistry
from pangloss.agents.execution.validation import ValidationRunner
from pangloss.execution.config import PanglossConfig
from pangloss.execution.coordinator import ParallelCoordinator
from pangloss.execution.invocation import AgentInvocation
from pangloss.execution.merge import MergeEngine
from pangloss.execution.reporting import build_outcome, render_pr_body
from pangloss.workflow.exceptions import ConfigError, NoSuccessfulAgents, PanglossError
from pangloss.workflow.models import (
    AgentTask,
    MergeStrategy,
    OrchestrationOutcome,
    repo_name_from_url,
)

logger = structlog.get_logger()


@dataclass
class GenerateOptions:
    repo_url: str
    feature_name: str
    request_prompt: str
    agents: list[str] | None = None
    timeout_minutes: int | None = None
    merge_strategy: str = "best_overall"


class Pangloss:
    """Runs every selected agent on the same request and merges the best results.

    One call to ``generate`` is one run: it gets its own workspace arena under
    ``base_dir`` (defaulting to the configured ``workspace_dir``), and the
    arena's workspaces are removed when the run ends.
    """

    def __init__(
        self,
        config: PanglossConfig,
        registry: ProviderRegistry,
        base_dir: Path | None = None,
        pr_client=None,
        validator: ValidationRunner | None = None,
        compat_fallback: bool = False,
        grace_seconds: float = 60.0,
    ):
        self._config = config
        self._registry = registry
        self._base_dir = Path(base_dir) if base_dir is not None else Path(config.workspace_dir)
        self._pr_client = pr_client or PullRequestClient()
        self._validator = validator
        self._compat_fallback = compat_fallback
        self._grace_seconds = grace_seconds

    def _build_tasks(self, options: GenerateOptions, agents: list[str]) -> list[AgentTask]:
        token = os.environ.get("GITHUB_TOKEN") or self._config.github_token or ""
        return [
            AgentTask.create(
                agent_id=agent,
                repo_url=options.repo_url,
                feature_name=options.feature_name,
                preset=self._config.llm_presets[agent],
                request_prompt=options.request_prompt,
                github_token=token,
            )
            for agent in agents
        ]

    async def generate(
        self,
        options: GenerateOptions,
        on_progress: Callable[[str, dict], None] | None = None,
    ) -> OrchestrationOutcome:
        started = time.monotonic()

        def progress(event: str, **payload) -> None:
            if on_progress:
                on_progress(event, payload)

        agents = list(dict.fromkeys(options.agents or self._config.default_agents))
        try:
            invalid = self._config.unknown_agents(agents)
            if invalid:
                raise ConfigError(f"Invalid agents: {', '.join(invalid)}")
            if not agents:
                raise ConfigError("No agents selected")
            strategy = MergeStrategy.from_name(options.merge_strategy)
        except (ConfigError, ValueError) as e:
            logger.error("run.rejected", error=str(e))
            return build_outcome([], error=str(e))

        arena = WorkspaceArena(self._base_dir)
        log = logger.bind(component="runner", run_id=arena.run_id)
        timeout_minutes = options.timeout_minutes or self._config.timeout_minutes
        timeout = float(timeout_minutes * 60)
        tasks = self._build_tasks(options, agents)

        log.info(
            "run.started",
            repo_url=options.repo_url,
            feature=options.feature_name,
            agents=agents,
            strategy=strategy.kind.value,
        )
        progress("run.started", run_id=arena.run_id, agents=agents, timeout_minutes=timeout_minutes)

        try:
            coordinator = ParallelCoordinator(
                AgentInvocation(self._registry, arena, self._validator),
                arena,
                max_parallel=self._config.max_parallel_agents,
                grace_seconds=self._grace_seconds,
            )
            results = await coordinator.run(tasks, timeout)
            succeeded = [r.agent_id for r in results if r.success]
            progress("agents.completed", total=len(results), succeeded=succeeded)

            if not succeeded:
                error = str(NoSuccessfulAgents(len(results)))
                log.warning("run.no_successful_agents", total=len(results))
                return build_outcome(results, error=error)

            final_branch = f"{repo_name_from_url(options.repo_url)}/{options.feature_name}/final"
            engine = MergeEngine(arena, compat_fallback=self._compat_fallback, timeout=timeout)
            try:
                report = await engine.merge(
                    results,
                    final_branch,
                    strategy,
                    options.repo_url,
                    token=tasks[0].github_token or None,
                )
            except PanglossError as e:
                log.error("run.merge_failed", error=str(e))
                return build_outcome(results, error=str(e))
            progress(
                "merge.completed",
                final_branch=final_branch,
                kind=report.kind.value,
                contributors=report.contributors,
            )

            pr_url = await self._pr_client.create(
                options.repo_url,
                final_branch,
                f"feat: {options.feature_name}",
                render_pr_body(options.feature_name, results, report),
            )
            outcome = build_outcome(results, merge_report=report, pull_request_url=pr_url)
            log.info(
                "run.finished",
                success=outcome.success,
                final_branch=outcome.final_branch,
                pull_request_url=pr_url,
                duration_seconds=round(time.monotonic() - started, 2),
            )
            return outcome
        finally:
            arena.cleanup()
            prune_runs(self._base_dir, keep=self._config.keep_runs)
