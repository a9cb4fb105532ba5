"""Protocol definitions for generators, provider commands and output parsers."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

from pangloss.agents.execution.types import GenerationResult
from pangloss.workflow.models import AgentTask, E2ESummary, TestSummary


@runtime_checkable
class Generator(Protocol):
    name: str
    description: str

    async def generate(
        self, task: AgentTask, workdir: Path, timeout: float,
    ) -> GenerationResult: ...


@runtime_checkable
class ProviderCommand(Protocol):
    """Builds the non-interactive command line for one provider's CLI."""

    name: str

    def build_invocation(self, task: AgentTask) -> list[str]: ...


@runtime_checkable
class ResultParser(Protocol):
    """Turns validation tool output into summaries."""

    def parse_tests(self, output: str) -> TestSummary: ...

    def parse_e2e(self, output: str) -> E2ESummary: ...
