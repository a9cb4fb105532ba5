"""Per-agent isolated workspaces scoped to one orchestration run.

Every agent gets its own directory keyed by run id and agent id. A workspace
is only reachable through ``WorkspaceArena.acquire`` and is removed when the
context exits, whether the agent succeeded, failed or was cancelled. Result
artifacts live beside the workspaces and outlive them so the coordinator can
collect them after every agent has finished; ``prune_runs`` bounds how many
past runs keep theirs.
"""

from __future__ import annotations

import asyncio
import re
import shutil
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator

import structlog

from pangloss.workflow.models import AgentTask

logger = structlog.get_logger()


def _slug(value: str) -> str:
    return re.sub(r"[^A-Za-z0-9._-]", "_", value) or "_"


@dataclass(frozen=True)
class Workspace:
    run_id: str
    key: str
    path: Path


class WorkspaceArena:
    """Hands out uniquely-keyed workspace directories under ``base_dir/run_id``."""

    def __init__(self, base_dir: Path, run_id: str | None = None) -> None:
        self.run_id = run_id or uuid.uuid4().hex[:12]
        self.root = Path(base_dir) / self.run_id
        self._active: set[str] = set()

    @property
    def results_dir(self) -> Path:
        return self.root / "results"

    def result_path(self, agent_id: str) -> Path:
        return self.results_dir / _slug(agent_id) / "result.json"

    @asynccontextmanager
    async def acquire(self, key: str) -> AsyncIterator[Workspace]:
        """Create a fresh workspace for ``key`` and remove it on exit."""
        slug = _slug(key)
        if slug in self._active:
            raise ValueError(f"Workspace already in use: {key}")
        path = self.root / "workspaces" / slug
        if path.exists():
            await asyncio.to_thread(shutil.rmtree, path, True)
        path.mkdir(parents=True)
        self._active.add(slug)
        logger.debug("workspace.acquired", run_id=self.run_id, key=key, path=str(path))
        try:
            yield Workspace(run_id=self.run_id, key=key, path=path)
        finally:
            self._active.discard(slug)
            await asyncio.shield(asyncio.to_thread(shutil.rmtree, path, True))
            logger.debug("workspace.released", run_id=self.run_id, key=key)

    def cleanup(self) -> None:
        """Remove every workspace of this run, keeping result artifacts."""
        shutil.rmtree(self.root / "workspaces", ignore_errors=True)


def prune_runs(base_dir: Path, keep: int) -> list[Path]:
    """Delete all but the ``keep`` most recently modified run directories.

    Only finished runs are considered: arena directories holding ``results``
    and no ``workspaces``, so a run still in progress is never touched.
    ``keep`` of 0 or less keeps everything. Returns the removed directories.
    """
    base_dir = Path(base_dir)
    if keep <= 0 or not base_dir.is_dir():
        return []
    runs = [
        p for p in base_dir.iterdir()
        if (p / "results").is_dir() and not (p / "workspaces").exists()
    ]
    runs.sort(key=lambda p: p.stat().st_mtime, reverse=True)
    removed = runs[keep:]
    for path in removed:
        shutil.rmtree(path, ignore_errors=True)
    if removed:
        logger.info("workspace.runs.pruned", base_dir=str(base_dir), removed=[p.name for p in removed])
    return removed


def task_environment(task: AgentTask, timeout: float) -> dict[str, str]:
    """Task parameters exposed to the agent process as environment variables."""
    preset = task.preset
    return {
        "AGENT_ID": task.agent_id,
        "REPO_URL": task.repo_url,
        "FEATURE_NAME": task.feature_name,
        "BRANCH_NAME": task.branch_name,
        "LLM_PROVIDER": preset.provider,
        "LLM_MODEL": preset.model,
        "CLI_MODEL": preset.cli_model or "",
        "LLM_TEMPERATURE": str(preset.temperature),
        "LLM_MAX_TOKENS": str(preset.max_tokens),
        "SYSTEM_PROMPT": preset.system_prompt or "",
        "REQUEST_PROMPT": task.request_prompt,
        "GITHUB_TOKEN": task.github_token,
        "TIMEOUT_MINUTES": str(max(1, round(timeout / 60))),
    }
