"""Tests for ClaudeCodeExecutor.

The slow test uses haiku with max_turns=1; it verifies wiring, not output quality.
The other tests patch query() so no SDK call is made.
"""

from __future__ import annotations

import asyncio
from unittest.mock import patch

import pytest
from claude_agent_sdk import AssistantMessage, ResultMessage, TextBlock, ToolUseBlock

from pangloss.agents.execution.claude_code import ClaudeCodeExecutor
from pangloss.agents.execution.protocol import Generator
from pangloss.agents.execution.types import GenerationResult


def _assistant(*blocks):
    return AssistantMessage(content=list(blocks), model="haiku")


def _result(is_error=False, result="done"):
    return ResultMessage(
        subtype="success",
        duration_ms=10,
        duration_api_ms=5,
        is_error=is_error,
        num_turns=1,
        session_id="s-1",
        result=result,
    )


class TestClaudeCodeExecutor:
    def test_is_generator(self):
        assert isinstance(ClaudeCodeExecutor(), Generator)

    async def test_collects_text_and_file_operations(self, make_task, tmp_path):
        captured = {}

        async def _stream(*, prompt, options):
            captured["prompt"] = prompt
            captured["options"] = options
            yield _assistant(
                TextBlock(text="Working on it"),
                ToolUseBlock(id="1", name="Write", input={"file_path": "login.py"}),
                ToolUseBlock(id="2", name="Edit", input={"file_path": "app.py"}),
                ToolUseBlock(id="3", name="Edit", input={"file_path": "app.py"}),
            )
            yield _result()

        with patch("pangloss.agents.execution.claude_code.query", _stream):
            result = await ClaudeCodeExecutor().generate(make_task(), tmp_path, timeout=10)

        assert isinstance(result, GenerationResult)
        assert result.success is True
        assert "Working on it" in result.output
        assert result.files_created == ["login.py"]
        assert result.files_modified == ["app.py"]
        assert "Add a login page" in captured["prompt"]
        assert captured["options"].model == "sonnet"
        assert captured["options"].cwd == tmp_path

    async def test_error_result(self, make_task, tmp_path):
        async def _stream(*, prompt, options):
            yield _result(is_error=True, result="max turns reached")

        with patch("pangloss.agents.execution.claude_code.query", _stream):
            result = await ClaudeCodeExecutor().generate(make_task(), tmp_path, timeout=10)

        assert result.success is False
        assert "max turns reached" in result.output

    async def test_timeout_handling(self, make_task, tmp_path):
        async def _hang(*, prompt, options):
            await asyncio.sleep(999)
            yield  # pragma: no cover

        with patch("pangloss.agents.execution.claude_code.query", _hang):
            result = await ClaudeCodeExecutor(model="haiku", max_turns=1).generate(make_task(), tmp_path, timeout=0.2)

        assert result.success is False
        assert result.timed_out is True
        assert "timed out" in result.output

    async def test_sdk_error(self, make_task, tmp_path):
        async def _broken(*, prompt, options):
            raise RuntimeError("cli not found")
            yield  # pragma: no cover

        with patch("pangloss.agents.execution.claude_code.query", _broken):
            result = await ClaudeCodeExecutor().generate(make_task(), tmp_path, timeout=10)

        assert result.success is False
        assert "Claude execution failed: cli not found" in result.output

    @pytest.mark.slow
    @pytest.mark.timeout(120)
    async def test_real_sdk_call(self, make_task, tmp_path):
        """One real SDK call: verify the result shape."""
        task = make_task(request_prompt="Respond with exactly: HELLO_TEST_PASS. Do not edit files.")
        result = await ClaudeCodeExecutor(model="haiku", max_turns=1).generate(task, tmp_path, timeout=90)
        assert isinstance(result.files_created, list)
        assert isinstance(result.files_modified, list)
        assert len(result.output) > 0
