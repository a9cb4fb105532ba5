"""Tests for the workspace arena and task environment."""

from __future__ import annotations

import asyncio
import os

import pytest

from pangloss.adapters.workspace import WorkspaceArena, prune_runs, task_environment


class TestWorkspaceArena:
    async def test_acquire_creates_and_removes(self, tmp_path):
        arena = WorkspaceArena(tmp_path, run_id="run-1")
        async with arena.acquire("codex-o3") as ws:
            assert ws.path.is_dir()
            assert ws.path == tmp_path / "run-1" / "workspaces" / "codex-o3"
            assert ws.run_id == "run-1"
            (ws.path / "file.txt").write_text("x")
        assert not ws.path.exists()

    async def test_released_on_error(self, tmp_path):
        arena = WorkspaceArena(tmp_path)
        with pytest.raises(RuntimeError):
            async with arena.acquire("a") as ws:
                raise RuntimeError("boom")
        assert not ws.path.exists()

    async def test_released_on_cancellation(self, tmp_path):
        arena = WorkspaceArena(tmp_path)
        entered = asyncio.Event()
        seen = {}

        async def hold():
            async with arena.acquire("a") as ws:
                seen["path"] = ws.path
                entered.set()
                await asyncio.Event().wait()

        task = asyncio.create_task(hold())
        await entered.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert not seen["path"].exists()

    async def test_same_key_cannot_be_held_twice(self, tmp_path):
        arena = WorkspaceArena(tmp_path)
        async with arena.acquire("a"):
            with pytest.raises(ValueError, match="already in use"):
                async with arena.acquire("a"):
                    pass
        async with arena.acquire("a"):
            pass

    async def test_distinct_runs_are_isolated(self, tmp_path):
        first = WorkspaceArena(tmp_path)
        second = WorkspaceArena(tmp_path)
        assert first.run_id != second.run_id
        async with first.acquire("a") as a, second.acquire("a") as b:
            assert a.path != b.path

    def test_result_path_is_slugged(self, tmp_path):
        arena = WorkspaceArena(tmp_path, run_id="r")
        assert arena.result_path("team/agent") == tmp_path / "r" / "results" / "team_agent" / "result.json"

    async def test_cleanup_keeps_results(self, tmp_path):
        arena = WorkspaceArena(tmp_path, run_id="r")
        arena.result_path("a").parent.mkdir(parents=True)
        arena.result_path("a").write_text("{}")
        (arena.root / "workspaces" / "stale").mkdir(parents=True)
        arena.cleanup()
        assert not (arena.root / "workspaces").exists()
        assert arena.result_path("a").exists()


class TestPruneRuns:
    @staticmethod
    def _finished_run(base, name, mtime):
        run = base / name
        (run / "results" / "a").mkdir(parents=True)
        os.utime(run, (mtime, mtime))
        return run

    def test_keeps_newest_finished_runs(self, tmp_path):
        old = self._finished_run(tmp_path, "old", 1_000)
        mid = self._finished_run(tmp_path, "mid", 2_000)
        new = self._finished_run(tmp_path, "new", 3_000)

        removed = prune_runs(tmp_path, keep=2)

        assert removed == [old]
        assert not old.exists()
        assert mid.exists() and new.exists()

    def test_leaves_active_runs_and_other_directories(self, tmp_path):
        active = self._finished_run(tmp_path, "active", 1_000)
        (active / "workspaces").mkdir()
        (tmp_path / "notes").mkdir()
        self._finished_run(tmp_path, "done", 2_000)

        assert prune_runs(tmp_path, keep=1) == []
        assert active.exists()
        assert (tmp_path / "notes").exists()

    def test_non_positive_keep_or_missing_base(self, tmp_path):
        self._finished_run(tmp_path, "r", 1_000)
        assert prune_runs(tmp_path, keep=0) == []
        assert prune_runs(tmp_path / "absent", keep=1) == []


class TestTaskEnvironment:
    def test_variables(self, make_task):
        env = task_environment(make_task(github_token="tok"), timeout=900)
        assert env["AGENT_ID"] == "claude-sonnet"
        assert env["BRANCH_NAME"] == "widgets/login/claude-sonnet"
        assert env["LLM_PROVIDER"] == "anthropic"
        assert env["CLI_MODEL"] == "sonnet"
        assert env["LLM_TEMPERATURE"] == "0.3"
        assert env["LLM_MAX_TOKENS"] == "4000"
        assert env["SYSTEM_PROMPT"] == ""
        assert env["GITHUB_TOKEN"] == "tok"
        assert env["TIMEOUT_MINUTES"] == "15"
        assert len(env) == 13

    def test_timeout_minutes_at_least_one(self, make_task):
        assert task_environment(make_task(), timeout=5)["TIMEOUT_MINUTES"] == "1"
