"""Outcome aggregation and the human-readable renderings of a run."""

from __future__ import annotations

from pangloss.workflow.models import AgentResult, MergeReport, OrchestrationOutcome


def build_outcome(
    results: list[AgentResult],
    merge_report: MergeReport | None = None,
    pull_request_url: str | None = None,
    error: str | None = None,
) -> OrchestrationOutcome:
    """Combine per-agent results and merge output into a run outcome.

    The run succeeds when at least one agent succeeded and no run-level
    error occurred. ``final_branch`` is only reported on success.
    """
    success = any(r.success for r in results) and error is None
    return OrchestrationOutcome(
        success=success,
        agent_results=list(results),
        final_branch=merge_report.final_branch if success and merge_report else None,
        pull_request_url=pull_request_url if success else None,
        error=error,
        merge_report=merge_report if success else None,
    )


def render_summary(results: list[AgentResult]) -> str:
    lines = ["Agent Results:"]
    for result in results:
        icon = "PASS" if result.success else "FAIL"
        lines.append("")
        lines.append(f"[{icon}] {result.agent_id}")
        lines.append(f"   Branch: {result.branch_name}")
        if result.success:
            m = result.metrics
            tests = result.test_summary
            passed = tests.passed if tests else 0
            total = tests.total if tests else 0
            lines.append(
                f"   Files: {m.files_changed}, Lines: +{m.lines_added}/-{m.lines_removed}"
            )
            lines.append(
                f"   Build: {result.build_status.value}, Tests: {passed}/{total}"
            )
            lines.append(
                f"   Quality: {m.quality_score:.2f}, Time: {m.execution_time_ms / 1000:.1f}s"
            )
            if not result.pushed:
                lines.append("   Warning: branch was not pushed")
        else:
            lines.append(f"   Error: {result.error or 'Unknown error'}")
    return "\n".join(lines)


def render_pr_body(
    feature_name: str,
    results: list[AgentResult],
    merge_report: MergeReport | None = None,
) -> str:
    """Markdown body for the pull request of the final branch."""
    successful = [r for r in results if r.success]
    tests_passing = sum(r.test_summary.passed for r in successful if r.test_summary)
    avg_quality = (
        sum(r.metrics.quality_score for r in successful) / len(successful) if successful else 0.0
    )
    agent_lines = [
        f"- **{r.agent_id}**: {r.metrics.files_changed} files, "
        f"+{r.metrics.lines_added}/-{r.metrics.lines_removed} lines"
        for r in successful
    ]

    sections = [
        f"## {feature_name}",
        "",
        f"Generated using Pangloss with {len(results)} parallel LLM agents.",
        "",
        "### Agent Results:",
        *agent_lines,
        "",
        "### Merged Solution:",
    ]
    if merge_report is not None:
        sections.append(
            f"Strategy `{merge_report.kind.value}` combining: "
            f"{', '.join(merge_report.contributors)}."
        )
        if merge_report.resolved_conflicts:
            sections.append(
                f"Conflicts resolved in favor of the agent branch: "
                f"{', '.join(merge_report.resolved_conflicts)}."
            )
    else:
        sections.append(
            "This PR contains the optimal combination of solutions from the successful agents above."
        )
    sections += [
        "",
        f"**Tests**: {tests_passing} passing",
        f"**Quality Score**: {avg_quality:.2f}",
        "",
        "---",
        "*Generated by Pangloss - finding the best of all possible solutions*",
    ]
    return "\n".join(sections)
