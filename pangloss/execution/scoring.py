"""Composite scoring and ranking of agent results."""

from __future__ import annotations

from pangloss.workflow.models import AgentResult, BuildStatus, RankedResult, Weights

# Fixed bonus for a successful build, applied regardless of the configured weights.
BUILD_BONUS = 0.1

# Runs at or under this many milliseconds earn the full performance term.
PERFORMANCE_REFERENCE_MS = 10_000


def performance_score(execution_time_ms: int) -> float:
    if execution_time_ms <= 0:
        return 1.0
    return min(1.0, PERFORMANCE_REFERENCE_MS / execution_time_ms)


def score(result: AgentResult, weights: Weights) -> float:
    """Weighted sum of test pass rate, quality proxy, speed and the build bonus.

    ``weights.coverage`` is accepted for configuration compatibility but has
    no term of its own.
    """
    summary = result.test_summary
    test_score = summary.passed / summary.total if summary and summary.total > 0 else 0.0
    build_score = 1.0 if result.build_status is BuildStatus.SUCCESS else 0.0
    quality = result.metrics.quality_score / 100
    perf = performance_score(result.metrics.execution_time_ms)
    return (
        test_score * weights.test_success
        + quality * weights.code_quality
        + perf * weights.performance
        + build_score * BUILD_BONUS
    )


def rank_results(results: list[AgentResult], weights: Weights) -> list[RankedResult]:
    """Order results by descending composite score.

    The sort is stable: equal scores keep their submission order. Failed
    results are ranked too; use ``select_candidates`` for merge input.
    """
    ranked = [RankedResult(result=r, composite_score=score(r, weights)) for r in results]
    return sorted(ranked, key=lambda rr: rr.composite_score, reverse=True)


def select_candidates(results: list[AgentResult], weights: Weights) -> list[RankedResult]:
    """Ranked successful results only."""
    return rank_results([r for r in results if r.success], weights)
