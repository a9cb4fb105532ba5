"""Convenience functions for wiring up generation runs."""

from __future__ import annotations

from pathlib import Path

from pangloss.agents.execution.providers import (
    ClaudeCliCommand,
    CliGenerator,
    CodexCommand,
    GeminiCommand,
)
from pangloss.agents.execution.registry import ProviderRegistry
from pangloss.execution.config import PanglossConfig
from pangloss.execution.runner import GenerateOptions, Pangloss
from pangloss.workflow.models import OrchestrationOutcome


def create_registry(use_sdk: bool = False, max_turns: int = 50) -> ProviderRegistry:
    """Create a ProviderRegistry backed by the provider CLIs.

    With ``use_sdk`` the anthropic provider runs in-process through the
    Claude Agent SDK instead of the ``claude`` CLI.
    """
    registry = ProviderRegistry()
    registry.register("openai", CliGenerator(CodexCommand()))
    registry.register("google", CliGenerator(GeminiCommand()))
    if use_sdk:
        from pangloss.agents.execution.claude_code import ClaudeCodeExecutor

        registry.register("anthropic", ClaudeCodeExecutor(max_turns=max_turns))
    else:
        registry.register("anthropic", CliGenerator(ClaudeCliCommand()))
    return registry


def create_test_registry(generator=None) -> ProviderRegistry:
    """Create a ProviderRegistry with one mock generator for every provider."""
    from pangloss.agents.execution.mocks import MockGenerator

    generator = generator or MockGenerator()
    registry = ProviderRegistry()
    for provider in ("openai", "anthropic", "google"):
        registry.register(provider, generator)
    return registry


async def run_generation(
    options: GenerateOptions,
    config: PanglossConfig | None = None,
    registry: ProviderRegistry | None = None,
    base_dir: Path | None = None,
    on_progress=None,
    mock: bool = False,
) -> OrchestrationOutcome:
    """Create a Pangloss runner and execute one generation.

    Uses the real provider registry unless ``mock`` or an explicit
    ``registry`` is given.
    """
    if registry is None:
        registry = create_test_registry() if mock else create_registry()
    runner = Pangloss(config=config or PanglossConfig(), registry=registry, base_dir=base_dir)
    return await runner.generate(options, on_progress=on_progress)
