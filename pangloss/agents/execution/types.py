"""Data types for agent generation infrastructure."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class GenerationResult:
    success: bool
    output: str
    files_modified: list[str] = field(default_factory=list)
    files_created: list[str] = field(default_factory=list)
    timed_out: bool = False
