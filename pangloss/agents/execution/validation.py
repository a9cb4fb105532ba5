"""Best-effort test, build and end-to-end validation of an agent workspace.

Each capability has an ordered list of known command forms. The first form
that exits 0 is the one whose output is used; when none does, the
capability is reported as a zero summary (or a failed build) and the run
carries on. Output is turned into summaries by a pluggable ResultParser.
"""

from __future__ import annotations

import json
import re
import time
from dataclasses import dataclass, replace
from pathlib import Path

import structlog

from pangloss.adapters.process import CommandResult, run_command
from pangloss.agents.execution.protocol import ResultParser
from pangloss.workflow.models import BuildStatus, E2ESummary, TestSummary

logger = structlog.get_logger()

TEST_COMMANDS: tuple[tuple[str, ...], ...] = (
    ("npm", "test"),
    ("yarn", "test"),
    ("pytest",),
    ("go", "test"),
    ("cargo", "test"),
)

BUILD_COMMANDS: tuple[tuple[str, ...], ...] = (
    ("npm", "run", "build"),
    ("yarn", "build"),
    ("tsc",),
    ("go", "build"),
    ("cargo", "build"),
)

E2E_COMMANDS: tuple[tuple[str, ...], ...] = (
    ("npx", "playwright", "test"),
)


def _count(pattern: re.Pattern[str], output: str) -> int:
    match = pattern.search(output)
    return int(match.group(1)) if match else 0


class RegexResultParser:
    """Extracts counts from free-text runner output.

    Defaults follow mocha-style ``"<n> passing"``/``"<n> failing"`` for unit
    tests and ``"<n> passed"``/``"<n> failed"`` for end-to-end runs.
    """

    def __init__(
        self,
        test_passed: str = r"(\d+) passing",
        test_failed: str = r"(\d+) failing",
        e2e_passed: str = r"(\d+) passed",
        e2e_failed: str = r"(\d+) failed",
    ) -> None:
        self._test_passed = re.compile(test_passed, re.IGNORECASE)
        self._test_failed = re.compile(test_failed, re.IGNORECASE)
        self._e2e_passed = re.compile(e2e_passed, re.IGNORECASE)
        self._e2e_failed = re.compile(e2e_failed, re.IGNORECASE)

    def parse_tests(self, output: str) -> TestSummary:
        passed = _count(self._test_passed, output)
        failed = _count(self._test_failed, output)
        return TestSummary(passed=passed, failed=failed, total=passed + failed)

    def parse_e2e(self, output: str) -> E2ESummary:
        passed = _count(self._e2e_passed, output)
        failed = _count(self._e2e_failed, output)
        return E2ESummary(passed=passed, failed=failed, total=passed + failed)


class JsonResultParser:
    """Reads a machine-readable summary line such as ``{"passed": 3, "failed": 1}``.

    The last line of output that decodes to a JSON object with a ``passed``
    key wins. Output without such a line, or a line whose counts are not
    numbers, parses as an empty summary.
    """

    @staticmethod
    def _find_summary(output: str) -> dict:
        for line in reversed(output.strip().splitlines()):
            line = line.strip()
            if not line.startswith("{"):
                continue
            try:
                data = json.loads(line)
            except json.JSONDecodeError:
                continue
            if isinstance(data, dict) and "passed" in data:
                return data
        return {}

    @staticmethod
    def _counts(data: dict) -> tuple[int, int, int]:
        passed = int(data.get("passed", 0))
        failed = int(data.get("failed", 0))
        return passed, failed, int(data.get("total", passed + failed))

    def parse_tests(self, output: str) -> TestSummary:
        data = self._find_summary(output)
        try:
            passed, failed, total = self._counts(data)
            coverage = data.get("coverage")
            coverage = float(coverage) if coverage is not None else None
        except (TypeError, ValueError):
            logger.warning("validation.summary.undecodable", kind="test", summary=data)
            return TestSummary()
        return TestSummary(passed=passed, failed=failed, total=total, coverage=coverage)

    def parse_e2e(self, output: str) -> E2ESummary:
        data = self._find_summary(output)
        try:
            passed, failed, total = self._counts(data)
        except (TypeError, ValueError):
            logger.warning("validation.summary.undecodable", kind="e2e", summary=data)
            return E2ESummary()
        artifacts = data.get("artifact_paths", data.get("screenshots", []))
        return E2ESummary(
            passed=passed,
            failed=failed,
            total=total,
            artifact_paths=tuple(str(p) for p in artifacts) if isinstance(artifacts, list) else (),
        )


@dataclass
class ValidationOutcome:
    test_summary: TestSummary
    build_status: BuildStatus
    e2e_summary: E2ESummary


class ValidationRunner:
    """Runs the test, build and end-to-end capabilities in that order."""

    def __init__(
        self,
        parser: ResultParser | None = None,
        test_commands: tuple[tuple[str, ...], ...] = TEST_COMMANDS,
        build_commands: tuple[tuple[str, ...], ...] = BUILD_COMMANDS,
        e2e_commands: tuple[tuple[str, ...], ...] = E2E_COMMANDS,
    ) -> None:
        self._parser = parser or RegexResultParser()
        self._test_commands = test_commands
        self._build_commands = build_commands
        self._e2e_commands = e2e_commands

    async def _first_success(
        self, capability: str, commands: tuple[tuple[str, ...], ...], workdir: Path, timeout: float,
    ) -> tuple[CommandResult, int] | None:
        """Run command forms in order, returning the first that exits 0 and its duration."""
        for command in commands:
            started = time.monotonic()
            result = await run_command(list(command), cwd=workdir, timeout=timeout)
            elapsed_ms = int((time.monotonic() - started) * 1000)
            if result.ok:
                logger.debug(
                    "validation.command.succeeded",
                    capability=capability, command=" ".join(command), duration_ms=elapsed_ms,
                )
                return result, elapsed_ms
        logger.info("validation.skipped", capability=capability, workdir=str(workdir))
        return None

    async def run_tests(self, workdir: Path, timeout: float) -> TestSummary:
        found = await self._first_success("test", self._test_commands, workdir, timeout)
        if found is None:
            return TestSummary()
        result, elapsed_ms = found
        return replace(self._parser.parse_tests(result.stdout), duration_ms=elapsed_ms)

    async def run_build(self, workdir: Path, timeout: float) -> BuildStatus:
        found = await self._first_success("build", self._build_commands, workdir, timeout)
        return BuildStatus.SUCCESS if found is not None else BuildStatus.FAILED

    async def run_e2e(self, workdir: Path, timeout: float) -> E2ESummary:
        found = await self._first_success("e2e", self._e2e_commands, workdir, timeout)
        if found is None:
            return E2ESummary()
        result, elapsed_ms = found
        return replace(self._parser.parse_e2e(result.stdout), duration_ms=elapsed_ms)

    async def validate(self, workdir: Path, timeout: float) -> ValidationOutcome:
        test_summary = await self.run_tests(workdir, timeout)
        build_status = await self.run_build(workdir, timeout)
        e2e_summary = await self.run_e2e(workdir, timeout)
        return ValidationOutcome(
            test_summary=test_summary,
            build_status=build_status,
            e2e_summary=e2e_summary,
        )
