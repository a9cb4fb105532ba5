"""Pull request creation through the GitHub CLI (``gh``)."""

from __future__ import annotations

import re

import structlog

from pangloss.adapters.process import run_command

logger = structlog.get_logger()

_OWNER_REPO = re.compile(r"github\.com[/:]([^/]+)/([^/.]+)")


def owner_repo(repo_url: str) -> tuple[str, str] | None:
    """``(owner, repo)`` for a GitHub URL, None for anything else."""
    match = _OWNER_REPO.search(repo_url)
    return (match.group(1), match.group(2)) if match else None


class PullRequestClient:
    """Opens pull requests with ``gh pr create``.

    Creation is best-effort: any failure is logged and reported as None so
    that a finished merge is never undone by a missing or unauthenticated
    ``gh``.
    """

    def __init__(self, executable: str = "gh", timeout: float | None = 120.0) -> None:
        self._executable = executable
        self._timeout = timeout

    async def create(self, repo_url: str, head: str, title: str, body: str) -> str | None:
        log = logger.bind(component="pull_request", head=head)
        parts = owner_repo(repo_url)
        if parts is None:
            log.warning("pull_request.creation_failed", reason="not a GitHub repository URL")
            return None

        owner, repo = parts
        result = await run_command(
            [
                self._executable, "pr", "create",
                "--repo", f"{owner}/{repo}",
                "--head", head,
                "--title", title,
                "--body", body,
            ],
            timeout=self._timeout,
        )
        if not result.ok:
            log.warning(
                "pull_request.creation_failed",
                exit_code=result.exit_code,
                stderr=result.stderr.strip(),
            )
            return None

        url = result.stdout.strip().splitlines()[-1] if result.stdout.strip() else None
        log.info("pull_request.created", url=url)
        return url
