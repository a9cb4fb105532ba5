from .exceptions import (
    AgentProcessFailed,
    BranchPushFailed,
    BranchUnavailable,
    ConfigError,
    GitCommandError,
    NoSuccessfulAgents,
    PanglossError,
    ResultUnavailable,
    WorkspaceSetupFailed,
)
from .models import (
    AgentMetrics,
    AgentResult,
    AgentTask,
    BuildStatus,
    E2ESummary,
    LLMPreset,
    MergeKind,
    MergeReport,
    MergeStrategy,
    OrchestrationOutcome,
    RankedResult,
    TestSummary,
    Weights,
)

__all__ = [
    "AgentMetrics",
    "AgentResult",
    "AgentTask",
    "BuildStatus",
    "E2ESummary",
    "LLMPreset",
    "MergeKind",
    "MergeReport",
    "MergeStrategy",
    "OrchestrationOutcome",
    "RankedResult",
    "TestSummary",
    "Weights",
    "AgentProcessFailed",
    "BranchPushFailed",
    "BranchUnavailable",
    "ConfigError",
    "GitCommandError",
    "NoSuccessfulAgents",
    "PanglossError",
    "ResultUnavailable",
    "WorkspaceSetupFailed",
]
