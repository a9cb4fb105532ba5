"""Agent execution infrastructure.

ClaudeCodeExecutor lives in ``pangloss.agents.execution.claude_code`` and is
imported on demand, so the SDK is only loaded when it is used.
"""

from pangloss.agents.execution.mocks import (
    CrashingGenerator,
    FailingGenerator,
    HangingGenerator,
    MockGenerator,
    MockPullRequestClient,
    MockValidationRunner,
    ScriptedInvoker,
)
from pangloss.agents.execution.protocol import Generator, ProviderCommand, ResultParser
from pangloss.agents.execution.providers import (
    ClaudeCliCommand,
    CliGenerator,
    CodexCommand,
    GeminiCommand,
    build_prompt,
)
from pangloss.agents.execution.registry import ProviderRegistry
from pangloss.agents.execution.types import GenerationResult
from pangloss.agents.execution.validation import (
    JsonResultParser,
    RegexResultParser,
    ValidationOutcome,
    ValidationRunner,
)

__all__ = [
    "ClaudeCliCommand",
    "CliGenerator",
    "CodexCommand",
    "CrashingGenerator",
    "FailingGenerator",
    "GeminiCommand",
    "GenerationResult",
    "Generator",
    "HangingGenerator",
    "JsonResultParser",
    "MockGenerator",
    "MockPullRequestClient",
    "MockValidationRunner",
    "ProviderCommand",
    "ProviderRegistry",
    "RegexResultParser",
    "ResultParser",
    "ScriptedInvoker",
    "ValidationOutcome",
    "ValidationRunner",
    "build_prompt",
]
