"""Per-agent result artifacts written by invocations and read by the coordinator."""

from __future__ import annotations

import json
from pathlib import Path

from pangloss.workflow.exceptions import ResultUnavailable
from pangloss.workflow.models import AgentResult

MISSING_RESULT_ERROR = "Agent did not complete execution"


def write_result_artifact(path: Path, result: AgentResult) -> Path:
    """Write one AgentResult as JSON, creating the agent's result folder."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(result.to_dict(), indent=2))
    return path


def read_result_artifact(path: Path, agent_id: str) -> AgentResult:
    """Load an AgentResult artifact.

    Raises ResultUnavailable when the file is missing or does not hold a
    valid result. A missing file carries the "did not complete" reason; any
    decoding or schema problem is reported as a read failure.
    """
    if not path.exists():
        raise ResultUnavailable(agent_id, MISSING_RESULT_ERROR)
    try:
        data = json.loads(path.read_text())
        if not isinstance(data, dict):
            raise ValueError("result artifact is not a JSON object")
        return AgentResult.from_dict(data)
    except (OSError, ValueError, KeyError, TypeError) as e:
        raise ResultUnavailable(agent_id, f"Failed to read result: {e}") from e
