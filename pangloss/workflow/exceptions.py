"""Error types for agent runs, merging and configuration."""


class PanglossError(Exception):
    """Base class for all orchestration errors."""


class ConfigError(PanglossError):
    """Raised when configuration or agent selection is invalid."""


class GitCommandError(PanglossError):
    """Raised when a git command exits non-zero."""

    def __init__(self, args: list[str], returncode: int, stderr: str):
        self.args_list = list(args)
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(
            f"git {' '.join(args)} failed with code {returncode}: {stderr.strip()}"
        )


class WorkspaceSetupFailed(PanglossError):
    """Raised when cloning or branch creation fails inside an agent workspace."""


class AgentProcessFailed(PanglossError):
    """Raised when the generation process exits non-zero or times out."""


class ResultUnavailable(PanglossError):
    """Raised when a per-agent result artifact is missing or unreadable."""

    def __init__(self, agent_id: str, reason: str):
        self.agent_id = agent_id
        self.reason = reason
        super().__init__(reason)


class NoSuccessfulAgents(PanglossError):
    """Raised when no agent produced a successful result."""

    def __init__(self, total: int):
        self.total = total
        super().__init__(f"No agents completed successfully ({total} attempted)")


class BranchUnavailable(PanglossError):
    """Raised when no candidate branch exists on the remote."""

    def __init__(self, branches: list[str]):
        self.branches = list(branches)
        super().__init__(
            f"No candidate branch available on remote: {', '.join(branches) or '(none)'}"
        )


class BranchPushFailed(PanglossError):
    """Raised when the final branch cannot be pushed."""

    def __init__(self, branch: str, reason: str = ""):
        self.branch = branch
        self.reason = reason
        message = f"Failed to push branch {branch}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
