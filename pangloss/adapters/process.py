"""Async subprocess execution with forced termination on timeout."""

from __future__ import annotations

import asyncio
import contextlib
import os
import signal
from dataclasses import dataclass
from pathlib import Path

import structlog

logger = structlog.get_logger()

# Seconds to wait after SIGTERM before escalating to SIGKILL.
TERMINATE_GRACE_SECONDS = 5.0


@dataclass
class CommandResult:
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and not self.timed_out


def _signal_group(proc: asyncio.subprocess.Process, sig: signal.Signals) -> None:
    """Signal the process group led by ``proc``, falling back to the process alone."""
    try:
        os.killpg(proc.pid, sig)
    except ProcessLookupError:
        pass
    except PermissionError:
        with contextlib.suppress(ProcessLookupError):
            proc.send_signal(sig)


async def _terminate(proc: asyncio.subprocess.Process) -> None:
    """Terminate a process and everything it spawned.

    Commands run in their own session, so the whole group gets SIGTERM and,
    after the grace period, SIGKILL. The group is killed even when the leader has
    already exited.
    """
    if proc.returncode is None:
        _signal_group(proc, signal.SIGTERM)
        try:
            await asyncio.wait_for(proc.wait(), TERMINATE_GRACE_SECONDS)
        except TimeoutError:
            pass
    _signal_group(proc, signal.SIGKILL)
    await proc.wait()


async def run_command(
    args: list[str],
    cwd: Path | None = None,
    timeout: float | None = None,
    env: dict[str, str] | None = None,
) -> CommandResult:
    """Run a command to completion and capture its output.

    A missing executable is reported as exit code 127 rather than raised, so
    callers probing for optional tools can move on to the next candidate.
    On timeout or cancellation the process is terminated before returning.
    """
    full_env = None
    if env is not None:
        full_env = {**os.environ, **env}

    try:
        proc = await asyncio.create_subprocess_exec(
            *args,
            cwd=str(cwd) if cwd is not None else None,
            env=full_env,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=True,
        )
    except (FileNotFoundError, PermissionError) as e:
        return CommandResult(exit_code=127, stderr=f"Failed to start {args[0]}: {e}")

    try:
        async with asyncio.timeout(timeout):
            stdout, stderr = await proc.communicate()
    except TimeoutError:
        logger.warning("process.timeout", command=args[0], timeout=timeout)
        await _terminate(proc)
        return CommandResult(
            exit_code=proc.returncode if proc.returncode is not None else -1,
            stderr=f"{args[0]} timed out after {timeout}s",
            timed_out=True,
        )
    except asyncio.CancelledError:
        await _terminate(proc)
        raise

    return CommandResult(
        exit_code=proc.returncode if proc.returncode is not None else -1,
        stdout=stdout.decode(errors="replace"),
        stderr=stderr.decode(errors="replace"),
    )
