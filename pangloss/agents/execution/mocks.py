"""Mock generators and collaborators for testing."""

from __future__ import annotations

import asyncio
from pathlib import Path

from pangloss.agents.execution.types import GenerationResult
from pangloss.agents.execution.validation import ValidationOutcome
from pangloss.workflow.models import AgentResult, AgentTask, BuildStatus, E2ESummary, TestSummary


class MockGenerator:
    """Writes canned files into the workspace and reports success.

    Without explicit ``files`` each agent writes ``generated_<agent_id>.txt``,
    so parallel mock agents never touch the same path.
    """

    name: str = "mock_generator"
    description: str = "Mock generator for testing"

    def __init__(self, files: dict[str, str] | None = None, output: str = "Mock generation complete") -> None:
        self._files = files
        self._output = output
        self.call_count: int = 0
        self.last_task: AgentTask | None = None

    async def generate(self, task: AgentTask, workdir: Path, timeout: float) -> GenerationResult:
        self.call_count += 1
        self.last_task = task
        files = self._files if self._files is not None else {
            f"generated_{task.agent_id}.txt": f"{task.request_prompt}\n"
        }
        created, modified = [], []
        for rel_path, content in files.items():
            target = Path(workdir) / rel_path
            (modified if target.exists() else created).append(rel_path)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)
        return GenerationResult(
            success=True, output=self._output, files_created=created, files_modified=modified,
        )


class FailingGenerator:
    """Reports a failed generation, as a provider CLI exiting non-zero would."""

    name: str = "failing_generator"
    description: str = "Generator that always fails"

    def __init__(self, output: str = "mock failed with code 1") -> None:
        self._output = output
        self.call_count: int = 0

    async def generate(self, task: AgentTask, workdir: Path, timeout: float) -> GenerationResult:
        self.call_count += 1
        return GenerationResult(success=False, output=self._output)


class CrashingGenerator:
    """Raises from ``generate``."""

    name: str = "crashing_generator"
    description: str = "Generator that raises"

    async def generate(self, task: AgentTask, workdir: Path, timeout: float) -> GenerationResult:
        raise RuntimeError("generator exploded")


class HangingGenerator:
    """Never returns until cancelled."""

    name: str = "hanging_generator"
    description: str = "Generator that never finishes"

    def __init__(self) -> None:
        self.started = asyncio.Event()
        self.cancelled = False

    async def generate(self, task: AgentTask, workdir: Path, timeout: float) -> GenerationResult:
        self.started.set()
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        raise AssertionError("unreachable")


class MockValidationRunner:
    """Returns a fixed validation outcome without running any command."""

    def __init__(
        self,
        test_summary: TestSummary | None = None,
        build_status: BuildStatus = BuildStatus.SUCCESS,
        e2e_summary: E2ESummary | None = None,
    ) -> None:
        self._outcome = ValidationOutcome(
            test_summary=test_summary or TestSummary(passed=1, failed=0, total=1),
            build_status=build_status,
            e2e_summary=e2e_summary or E2ESummary(),
        )
        self.validated: list[Path] = []

    async def validate(self, workdir: Path, timeout: float) -> ValidationOutcome:
        self.validated.append(Path(workdir))
        return self._outcome


class ScriptedInvoker:
    """Agent invoker whose behavior is scripted per agent id.

    Each script entry is an AgentResult to return, an exception to raise, or
    the string ``"hang"`` to block until cancelled. Unscripted agents succeed
    with an empty result.
    """

    def __init__(self, script: dict[str, AgentResult | BaseException | str] | None = None) -> None:
        self._script = script or {}
        self.invoked: list[str] = []

    async def invoke(self, task: AgentTask, timeout: float) -> AgentResult:
        self.invoked.append(task.agent_id)
        entry = self._script.get(task.agent_id)
        if entry is None:
            return AgentResult(
                agent_id=task.agent_id,
                branch_name=task.branch_name,
                success=True,
                build_status=BuildStatus.SUCCESS,
            )
        if isinstance(entry, BaseException):
            raise entry
        if entry == "hang":
            await asyncio.Event().wait()
        return entry


class MockPullRequestClient:
    """Records pull request requests and returns a canned URL."""

    def __init__(self, url: str | None = "https://github.com/acme/widgets/pull/1") -> None:
        self._url = url
        self.calls: list[dict] = []

    async def create(self, repo_url: str, head: str, title: str, body: str) -> str | None:
        self.calls.append({"repo_url": repo_url, "head": head, "title": title, "body": body})
        return self._url
