"""Provider CLI commands and the generator that runs them in a workspace."""

from __future__ import annotations

from pathlib import Path

import structlog

from pangloss.adapters.process import run_command
from pangloss.adapters.workspace import task_environment
from pangloss.agents.execution.protocol import ProviderCommand
from pangloss.agents.execution.types import GenerationResult
from pangloss.workflow.models import AgentTask

logger = structlog.get_logger()

IMPLEMENT_INSTRUCTION = (
    "Please implement the requested feature by making the necessary code changes. "
    "Work directly in the codebase and make all required modifications."
)


def build_prompt(task: AgentTask) -> str:
    """Full prompt handed to every provider."""
    parts = [task.request_prompt, "", IMPLEMENT_INSTRUCTION]
    if task.preset.system_prompt:
        parts.extend(["", task.preset.system_prompt])
    return "\n".join(parts)


def _model_flag(task: AgentTask) -> list[str]:
    return ["--model", task.preset.cli_model] if task.preset.cli_model else []


class CodexCommand:
    """OpenAI Codex CLI in full-auto mode."""

    name: str = "codex"

    def build_invocation(self, task: AgentTask) -> list[str]:
        return [
            "codex",
            *_model_flag(task),
            "--approval-mode", "full-auto",
            "--quiet",
            "--prompt", build_prompt(task),
        ]


class ClaudeCliCommand:
    """Claude Code CLI in print mode."""

    name: str = "claude"

    def build_invocation(self, task: AgentTask) -> list[str]:
        return [
            "claude",
            *_model_flag(task),
            "--output-format", "stream-json",
            "--verbose",
            "-p", build_prompt(task),
        ]


class GeminiCommand:
    """Gemini CLI."""

    name: str = "gemini"

    def build_invocation(self, task: AgentTask) -> list[str]:
        return ["gemini", *_model_flag(task), "--prompt", build_prompt(task)]


class CliGenerator:
    """Runs a provider CLI non-interactively inside the agent workspace.

    The CLI is expected to edit files in place and exit 0. A non-zero exit,
    a missing executable or a timeout is reported as a failed generation;
    on timeout the process has already been terminated.
    """

    description: str = "Runs a provider CLI against the workspace"

    def __init__(self, command: ProviderCommand) -> None:
        self._command = command
        self.name = command.name

    async def generate(
        self, task: AgentTask, workdir: Path, timeout: float,
    ) -> GenerationResult:
        args = self._command.build_invocation(task)
        logger.info("generator.cli.started", agent_id=task.agent_id, command=args[0])
        result = await run_command(
            args, cwd=workdir, timeout=timeout, env=task_environment(task, timeout),
        )
        if result.timed_out:
            return GenerationResult(
                success=False,
                output=f"{args[0]} timed out after {timeout}s",
                timed_out=True,
            )
        if result.exit_code != 0:
            return GenerationResult(
                success=False,
                output=f"{args[0]} failed with code {result.exit_code}\n{result.stderr}".strip(),
            )
        return GenerationResult(success=True, output=result.stdout.strip() or "(no output)")
