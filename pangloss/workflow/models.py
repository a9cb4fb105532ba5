"""Domain models for parallel agent runs and their merge."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum


class BuildStatus(Enum):
    SUCCESS = "success"
    FAILED = "failed"
    NOT_RUN = "not_run"


class MergeKind(Enum):
    BEST_OVERALL = "best_overall"
    BEST_PER_FILE = "best_per_file"
    COMPOSITE = "composite"


@dataclass(frozen=True)
class LLMPreset:
    provider: str
    model: str
    temperature: float = 0.3
    cli_model: str | None = None
    max_tokens: int = 4000
    system_prompt: str | None = None

    def to_dict(self) -> dict:
        data: dict = {
            "provider": self.provider,
            "model": self.model,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if self.cli_model is not None:
            data["cli_model"] = self.cli_model
        if self.system_prompt is not None:
            data["system_prompt"] = self.system_prompt
        return data

    @classmethod
    def from_dict(cls, data: dict) -> LLMPreset:
        return cls(
            provider=data["provider"],
            model=data["model"],
            temperature=float(data.get("temperature", 0.3)),
            cli_model=data.get("cli_model"),
            max_tokens=int(data.get("max_tokens", 4000)),
            system_prompt=data.get("system_prompt"),
        )


def repo_name_from_url(repo_url: str) -> str:
    """Extract the repository name used in branch names.

    GitHub URLs yield the repository segment; other URLs and local paths fall
    back to their last path component. Anything unparseable is ``unknown-repo``.
    """
    match = re.search(r"github\.com[/:][^/]+/([^/.]+)", repo_url)
    if match:
        return match.group(1)
    tail = repo_url.rstrip("/").rsplit("/", 1)[-1]
    if tail.endswith(".git"):
        tail = tail[: -len(".git")]
    return tail or "unknown-repo"


@dataclass(frozen=True)
class AgentTask:
    agent_id: str
    repo_url: str
    feature_name: str
    branch_name: str
    preset: LLMPreset
    request_prompt: str
    github_token: str = ""

    @classmethod
    def create(
        cls,
        agent_id: str,
        repo_url: str,
        feature_name: str,
        preset: LLMPreset,
        request_prompt: str,
        github_token: str = "",
    ) -> AgentTask:
        """Build a task whose branch is ``{repo}/{feature}/{agent_id}``."""
        repo = repo_name_from_url(repo_url)
        return cls(
            agent_id=agent_id,
            repo_url=repo_url,
            feature_name=feature_name,
            branch_name=f"{repo}/{feature_name}/{agent_id}",
            preset=preset,
            request_prompt=request_prompt,
            github_token=github_token,
        )


@dataclass(frozen=True)
class TestSummary:
    __test__ = False

    passed: int = 0
    failed: int = 0
    total: int = 0
    duration_ms: int = 0
    coverage: float | None = None

    def to_dict(self) -> dict:
        data: dict = {
            "passed": self.passed,
            "failed": self.failed,
            "total": self.total,
            "duration_ms": self.duration_ms,
        }
        if self.coverage is not None:
            data["coverage"] = self.coverage
        return data

    @classmethod
    def from_dict(cls, data: dict) -> TestSummary:
        coverage = data.get("coverage")
        return cls(
            passed=int(data.get("passed", 0)),
            failed=int(data.get("failed", 0)),
            total=int(data.get("total", 0)),
            duration_ms=int(data.get("duration_ms", 0)),
            coverage=float(coverage) if coverage is not None else None,
        )


@dataclass(frozen=True)
class E2ESummary:
    passed: int = 0
    failed: int = 0
    total: int = 0
    artifact_paths: tuple[str, ...] = ()
    duration_ms: int = 0

    def to_dict(self) -> dict:
        return {
            "passed": self.passed,
            "failed": self.failed,
            "total": self.total,
            "artifact_paths": list(self.artifact_paths),
            "duration_ms": self.duration_ms,
        }

    @classmethod
    def from_dict(cls, data: dict) -> E2ESummary:
        return cls(
            passed=int(data.get("passed", 0)),
            failed=int(data.get("failed", 0)),
            total=int(data.get("total", 0)),
            artifact_paths=tuple(data.get("artifact_paths", [])),
            duration_ms=int(data.get("duration_ms", 0)),
        )


@dataclass(frozen=True)
class AgentMetrics:
    files_changed: int = 0
    lines_added: int = 0
    lines_removed: int = 0
    complexity_score: float = 0.0
    quality_score: float = 0.0
    execution_time_ms: int = 0

    def to_dict(self) -> dict:
        return {
            "files_changed": self.files_changed,
            "lines_added": self.lines_added,
            "lines_removed": self.lines_removed,
            "complexity_score": self.complexity_score,
            "quality_score": self.quality_score,
            "execution_time_ms": self.execution_time_ms,
        }

    @classmethod
    def from_dict(cls, data: dict) -> AgentMetrics:
        return cls(
            files_changed=int(data.get("files_changed", 0)),
            lines_added=int(data.get("lines_added", 0)),
            lines_removed=int(data.get("lines_removed", 0)),
            complexity_score=float(data.get("complexity_score", 0.0)),
            quality_score=float(data.get("quality_score", 0.0)),
            execution_time_ms=int(data.get("execution_time_ms", 0)),
        )


@dataclass(frozen=True)
class AgentResult:
    """Outcome of one agent run, also the on-disk artifact schema.

    A failed result carries no changed paths, never reports a successful
    build and always explains itself through ``error``. ``pushed`` is False
    when a successful run could not publish its branch.
    """

    agent_id: str
    branch_name: str
    success: bool
    changed_paths: tuple[str, ...] = ()
    build_status: BuildStatus = BuildStatus.NOT_RUN
    metrics: AgentMetrics = field(default_factory=AgentMetrics)
    test_summary: TestSummary | None = None
    e2e_summary: E2ESummary | None = None
    error: str | None = None
    pushed: bool = True

    def __post_init__(self) -> None:
        # Normalise to an ordered, de-duplicated tuple
        object.__setattr__(self, "changed_paths", tuple(dict.fromkeys(self.changed_paths)))
        if not self.success:
            if self.changed_paths:
                raise ValueError(f"Failed result for {self.agent_id} cannot list changed paths")
            if self.build_status is BuildStatus.SUCCESS:
                raise ValueError(f"Failed result for {self.agent_id} cannot report a successful build")
            if not self.error:
                raise ValueError(f"Failed result for {self.agent_id} must carry an error")
        elif self.error is not None:
            raise ValueError(f"Successful result for {self.agent_id} cannot carry an error")
        if not 0 <= self.metrics.quality_score <= 100:
            raise ValueError(
                f"quality_score must be within [0, 100], got {self.metrics.quality_score}"
            )

    @classmethod
    def failure(
        cls,
        agent_id: str,
        branch_name: str,
        error: str,
        build_status: BuildStatus = BuildStatus.NOT_RUN,
        execution_time_ms: int = 0,
    ) -> AgentResult:
        """Synthesize a failed result with zeroed metrics."""
        return cls(
            agent_id=agent_id,
            branch_name=branch_name,
            success=False,
            build_status=build_status,
            metrics=AgentMetrics(execution_time_ms=execution_time_ms),
            error=error,
            pushed=False,
        )

    def to_dict(self) -> dict:
        data: dict = {
            "agent_id": self.agent_id,
            "branch_name": self.branch_name,
            "success": self.success,
            "changed_paths": list(self.changed_paths),
            "build_status": self.build_status.value,
            "metrics": self.metrics.to_dict(),
            "pushed": self.pushed,
        }
        if self.test_summary is not None:
            data["test_summary"] = self.test_summary.to_dict()
        if self.e2e_summary is not None:
            data["e2e_summary"] = self.e2e_summary.to_dict()
        if self.error is not None:
            data["error"] = self.error
        return data

    @classmethod
    def from_dict(cls, data: dict) -> AgentResult:
        test_summary = data.get("test_summary")
        e2e_summary = data.get("e2e_summary")
        return cls(
            agent_id=data["agent_id"],
            branch_name=data["branch_name"],
            success=bool(data["success"]),
            changed_paths=tuple(data.get("changed_paths", [])),
            build_status=BuildStatus(data.get("build_status", BuildStatus.NOT_RUN.value)),
            metrics=AgentMetrics.from_dict(data.get("metrics", {})),
            test_summary=TestSummary.from_dict(test_summary) if test_summary is not None else None,
            e2e_summary=E2ESummary.from_dict(e2e_summary) if e2e_summary is not None else None,
            error=data.get("error"),
            pushed=bool(data.get("pushed", True)),
        )


@dataclass(frozen=True)
class RankedResult:
    result: AgentResult
    composite_score: float


@dataclass(frozen=True)
class Weights:
    test_success: float = 0.4
    code_quality: float = 0.3
    performance: float = 0.2
    coverage: float = 0.1


@dataclass(frozen=True)
class MergeStrategy:
    kind: MergeKind = MergeKind.BEST_OVERALL
    weights: Weights = field(default_factory=Weights)

    @classmethod
    def from_name(cls, name: str, weights: Weights | None = None) -> MergeStrategy:
        try:
            kind = MergeKind(name)
        except ValueError:
            valid = ", ".join(k.value for k in MergeKind)
            raise ValueError(f"Unknown merge strategy: {name} (expected one of {valid})") from None
        return cls(kind=kind, weights=weights or Weights())


@dataclass
class MergeReport:
    final_branch: str
    kind: MergeKind
    contributors: list[str] = field(default_factory=list)
    file_sources: dict[str, str] = field(default_factory=dict)
    resolved_conflicts: list[str] = field(default_factory=list)
    skipped_branches: list[str] = field(default_factory=list)


@dataclass
class OrchestrationOutcome:
    success: bool
    agent_results: list[AgentResult] = field(default_factory=list)
    final_branch: str | None = None
    pull_request_url: str | None = None
    error: str | None = None
    merge_report: MergeReport | None = None
