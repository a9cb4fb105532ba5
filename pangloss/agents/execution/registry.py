"""Registry for mapping LLM providers to generators."""

from __future__ import annotations

from pangloss.agents.execution.protocol import Generator


class ProviderRegistry:
    """Maps provider names to generators."""

    def __init__(self) -> None:
        self._generators: dict[str, Generator] = {}

    def register(self, provider: str, generator: Generator) -> None:
        self._generators[provider] = generator

    def get_generator(self, provider: str) -> Generator:
        if provider not in self._generators:
            raise KeyError(f"Unsupported LLM provider: {provider}")
        return self._generators[provider]

    def list_generators(self) -> dict[str, Generator]:
        return dict(self._generators)
