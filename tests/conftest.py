"""Shared test configuration."""

from __future__ import annotations

import os
import subprocess
from pathlib import Path

import pytest
import structlog

from pangloss.workflow.models import AgentMetrics, AgentResult, AgentTask, BuildStatus, LLMPreset, TestSummary

_GIT_ENV = {
    "GIT_AUTHOR_NAME": "Test",
    "GIT_AUTHOR_EMAIL": "test@example.com",
    "GIT_COMMITTER_NAME": "Test",
    "GIT_COMMITTER_EMAIL": "test@example.com",
}


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Undo logging configuration that binds to a per-test captured stream."""
    yield
    structlog.reset_defaults()


def pytest_addoption(parser):
    parser.addoption(
        "--run-slow", action="store_true", default=False, help="Run slow tests that call real LLM CLIs"
    )


def pytest_collection_modifyitems(config, items):
    if config.getoption("--run-slow"):
        return
    skip_slow = pytest.mark.skip(reason="Need --run-slow to run")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


def git(*args: str, cwd: Path | None = None, check: bool = True) -> subprocess.CompletedProcess:
    return subprocess.run(
        ["git", *args],
        cwd=cwd,
        check=check,
        capture_output=True,
        text=True,
        env={**os.environ, **_GIT_ENV},
    )


class RemoteRepo:
    """A bare repository on disk standing in for the GitHub remote."""

    def __init__(self, root: Path) -> None:
        self.path = root / "widgets.git"
        self._scratch = root / "scratch"
        self._counter = 0
        git("init", "--bare", "-b", "main", str(self.path))
        seed = self._clone()
        git("symbolic-ref", "HEAD", "refs/heads/main", cwd=seed)
        (seed / "README.md").write_text("# Widgets\n")
        (seed / "app.py").write_text("def main():\n    return 1\n")
        git("add", "-A", cwd=seed)
        git("commit", "-m", "initial", cwd=seed)
        git("push", "origin", "main", cwd=seed)

    @property
    def url(self) -> str:
        return str(self.path)

    def _clone(self) -> Path:
        self._counter += 1
        dest = self._scratch / f"clone-{self._counter}"
        git("clone", str(self.path), str(dest))
        return dest

    def push_branch(self, branch: str, files: dict[str, str | None], base: str = "main") -> None:
        """Commit ``files`` on ``branch`` (created from ``base``) and push it.

        A None content deletes the path.
        """
        work = self._clone()
        git("checkout", "-B", branch, f"origin/{base}", cwd=work)
        for rel_path, content in files.items():
            target = work / rel_path
            if content is None:
                target.unlink()
            else:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(content)
        git("add", "-A", cwd=work)
        git("commit", "-m", f"update {branch}", cwd=work)
        git("push", "origin", f"{branch}:{branch}", cwd=work)

    def show(self, ref: str, path: str) -> str:
        return git("--git-dir", str(self.path), "show", f"{ref}:{path}").stdout

    def exists(self, ref: str, path: str) -> bool:
        return git("--git-dir", str(self.path), "cat-file", "-e", f"{ref}:{path}", check=False).returncode == 0

    def branches(self) -> list[str]:
        out = git("--git-dir", str(self.path), "branch", "--format=%(refname:short)").stdout
        return [line for line in out.splitlines() if line]

    def log(self, ref: str) -> list[str]:
        out = git("--git-dir", str(self.path), "log", "--format=%s", ref).stdout
        return [line for line in out.splitlines() if line]


@pytest.fixture
def remote(tmp_path) -> RemoteRepo:
    return RemoteRepo(tmp_path / "remote")


@pytest.fixture
def preset() -> LLMPreset:
    return LLMPreset(provider="anthropic", model="claude-code-cli", cli_model="sonnet")


@pytest.fixture
def make_task(preset):
    def _make(agent_id: str = "claude-sonnet", repo_url: str = "https://github.com/acme/widgets", **kwargs) -> AgentTask:
        return AgentTask.create(
            agent_id=agent_id,
            repo_url=repo_url,
            feature_name=kwargs.pop("feature_name", "login"),
            preset=kwargs.pop("preset", preset),
            request_prompt=kwargs.pop("request_prompt", "Add a login page"),
            **kwargs,
        )

    return _make


@pytest.fixture
def make_result():
    def _make(
        agent_id: str,
        branch_name: str | None = None,
        passed: int = 1,
        total: int = 1,
        quality: float = 50.0,
        time_ms: int = 5000,
        changed_paths: tuple[str, ...] = (),
        build_status: BuildStatus = BuildStatus.SUCCESS,
    ) -> AgentResult:
        return AgentResult(
            agent_id=agent_id,
            branch_name=branch_name or f"widgets/login/{agent_id}",
            success=True,
            changed_paths=changed_paths,
            build_status=build_status,
            test_summary=TestSummary(passed=passed, failed=total - passed, total=total),
            metrics=AgentMetrics(
                files_changed=len(changed_paths),
                quality_score=quality,
                execution_time_ms=time_ms,
            ),
        )

    return _make
