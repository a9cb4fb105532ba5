"""Merge engine: reconciles ranked agent branches into one final branch.

All strategies work in a fresh clone: the final branch starts at the default
branch tip, candidate branches are read from ``origin``, and the result is
pushed back. Conflicts are always resolved by taking the incoming (agent)
side, so a merge never stops for manual input.

Strategies:
    best_overall   merge the top-ranked available branch with --no-ff.
    best_per_file  for every touched path, take the version from the
                   highest-ranked candidate that touched it.
    composite      merge the top-ranked branch, then every lower-ranked
                   branch whose paths do not overlap what is already in.

With ``compat_fallback`` the last two behave exactly like best_overall.
"""

from __future__ import annotations

import structlog

from pangloss.adapters.git import GitClient
from pangloss.adapters.workspace import WorkspaceArena
from pangloss.execution.scoring import select_candidates
from pangloss.workflow.exceptions import (
    BranchPushFailed,
    BranchUnavailable,
    GitCommandError,
    NoSuccessfulAgents,
    WorkspaceSetupFailed,
)
from pangloss.workflow.models import (
    AgentResult,
    MergeKind,
    MergeReport,
    MergeStrategy,
    RankedResult,
)

logger = structlog.get_logger()

MERGE_WORKSPACE_KEY = "merge-final"


class MergeEngine:
    def __init__(
        self,
        arena: WorkspaceArena,
        compat_fallback: bool = False,
        timeout: float | None = None,
    ) -> None:
        self._arena = arena
        self._compat_fallback = compat_fallback
        self._timeout = timeout
        self._log = logger.bind(component="merge_engine", run_id=arena.run_id)

    async def merge(
        self,
        results: list[AgentResult],
        final_branch: str,
        strategy: MergeStrategy,
        repo_url: str,
        token: str | None = None,
    ) -> MergeReport:
        """Build and push ``final_branch`` from the successful results.

        Raises NoSuccessfulAgents when nothing succeeded, BranchUnavailable
        when no successful candidate's branch exists on the remote, and
        BranchPushFailed when the final branch cannot be pushed.
        """
        candidates = select_candidates(results, strategy.weights)
        if not candidates:
            raise NoSuccessfulAgents(len(results))

        kind = strategy.kind
        if self._compat_fallback and kind is not MergeKind.BEST_OVERALL:
            self._log.info("merge.strategy.fallback", requested=kind.value)
            kind = MergeKind.BEST_OVERALL

        async with self._arena.acquire(MERGE_WORKSPACE_KEY) as workspace:
            try:
                git = await GitClient.clone(
                    repo_url, workspace.path / "repo", token=token, timeout=self._timeout,
                )
                await git.create_branch(final_branch)
                await git.fetch()
            except GitCommandError as e:
                raise WorkspaceSetupFailed(f"Cannot prepare {final_branch}: {e}") from e

            available, skipped = await self._available(git, candidates)
            report = MergeReport(final_branch=final_branch, kind=kind, skipped_branches=skipped)

            self._log.info(
                "merge.started",
                kind=kind.value,
                final_branch=final_branch,
                ranking=[(c.result.agent_id, round(c.composite_score, 4)) for c in available],
            )
            if kind is MergeKind.BEST_OVERALL:
                await self._merge_branch(git, available[0].result, report)
            else:
                paths = await self._branch_paths(git, available)
                if kind is MergeKind.BEST_PER_FILE:
                    await self._merge_per_file(git, available, paths, report)
                else:
                    await self._merge_composite(git, available, paths, report)

            try:
                await git.push(final_branch)
            except GitCommandError as e:
                raise BranchPushFailed(final_branch, e.stderr.strip()) from e

        self._log.info(
            "merge.finished",
            final_branch=final_branch,
            contributors=report.contributors,
            resolved_conflicts=len(report.resolved_conflicts),
        )
        return report

    async def _available(
        self, git: GitClient, candidates: list[RankedResult],
    ) -> tuple[list[RankedResult], list[str]]:
        """Split candidates into those whose branch exists on origin and the rest."""
        available: list[RankedResult] = []
        skipped: list[str] = []
        for candidate in candidates:
            branch = candidate.result.branch_name
            if await git.remote_branch_exists(branch):
                available.append(candidate)
            else:
                self._log.warning(
                    "merge.branch.unavailable",
                    agent_id=candidate.result.agent_id,
                    branch=branch,
                )
                skipped.append(branch)
        if not available:
            raise BranchUnavailable(skipped)
        return available, skipped

    async def _merge_branch(
        self,
        git: GitClient,
        result: AgentResult,
        report: MergeReport,
        message: str | None = None,
    ) -> None:
        """No-fast-forward merge of one agent branch, taking theirs on conflict."""
        message = message or f"Merge best solution from {result.agent_id}"
        ref = f"origin/{result.branch_name}"
        outcome = await git.merge_no_ff(ref, message)
        if not outcome.ok:
            conflicts = await git.conflicted_paths()
            if not conflicts:
                raise GitCommandError(["merge", "--no-ff", ref], outcome.exit_code, outcome.stderr)
            self._log.info(
                "merge.conflict.resolved",
                agent_id=result.agent_id,
                policy="take_incoming",
                paths=conflicts,
            )
            await git.take_theirs(conflicts)
            await git.commit(message)
            report.resolved_conflicts.extend(conflicts)
        report.contributors.append(result.agent_id)

    async def _branch_paths(
        self, git: GitClient, available: list[RankedResult],
    ) -> dict[str, list[str]]:
        """Paths each candidate branch actually changed, read from its commits.

        Branches also carry whatever validation produced, so the recorded
        ``changed_paths`` can miss files. Must run before anything is merged.
        """
        paths: dict[str, list[str]] = {}
        for candidate in available:
            result = candidate.result
            committed = await git.branch_changes(f"origin/{result.branch_name}")
            unrecorded = sorted(set(committed) - set(result.changed_paths))
            if unrecorded:
                self._log.debug("merge.paths.unrecorded", agent_id=result.agent_id, paths=unrecorded)
            paths[result.agent_id] = committed
        return paths

    async def _merge_per_file(
        self,
        git: GitClient,
        available: list[RankedResult],
        paths: dict[str, list[str]],
        report: MergeReport,
    ) -> None:
        owners: dict[str, AgentResult] = {}
        for candidate in available:
            for path in paths[candidate.result.agent_id]:
                owners.setdefault(path, candidate.result)

        for path, owner in owners.items():
            ref = f"origin/{owner.branch_name}"
            if await git.path_exists(ref, path):
                await git.checkout_path(ref, path)
            else:
                await git.remove_path(path)
            report.file_sources[path] = owner.agent_id

        contributors = list(dict.fromkeys(report.file_sources.values()))
        if not contributors:
            # No candidate touched any file; fall back to the top branch
            await self._merge_branch(git, available[0].result, report)
            return

        await git.add_all()
        if await git.has_staged_changes():
            await git.commit(f"Combine best per-file solutions from {', '.join(contributors)}")
        report.contributors.extend(contributors)

    async def _merge_composite(
        self,
        git: GitClient,
        available: list[RankedResult],
        paths: dict[str, list[str]],
        report: MergeReport,
    ) -> None:
        taken: set[str] = set()
        for index, candidate in enumerate(available):
            result = candidate.result
            touched = set(paths[result.agent_id])
            if index > 0 and touched & taken:
                self._log.info(
                    "merge.composite.overlap_skipped",
                    agent_id=result.agent_id,
                    overlapping=sorted(touched & taken),
                )
                continue
            message = None if index == 0 else f"Merge complementary solution from {result.agent_id}"
            await self._merge_branch(git, result, report, message=message)
            taken |= touched
