"""Integration tests — ProcessInvoker against real child processes."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Callable

import pytest

from actuator.exceptions import ExecutionError, ExecutionTimeoutError
from actuator.execution.invoker import ProcessInvoker


@pytest.fixture
def echo(install_module: Callable[..., Path]) -> Path:
    return install_module("echo")


@pytest.fixture
def reverse(install_module: Callable[..., Path]) -> Path:
    return install_module("reverse")


@pytest.mark.integration
class TestInvoke:
    async def test_reverse_string(self, reverse: Path) -> None:
        result = await ProcessInvoker().invoke(reverse, "string", "maradona")
        assert result.succeeded
        assert result.json() == "anodaram"
        assert result.stderr == b""
        assert result.duration > 0

    async def test_reverse_list(self, reverse: Path) -> None:
        result = await ProcessInvoker().invoke(reverse, "list", [1, 2, 3, 4, 5])
        assert result.json() == [5, 4, 3, 2, 1]

    async def test_configuration_is_passed_on_stdin(self, echo: Path) -> None:
        result = await ProcessInvoker().invoke(
            echo, "message", {"text": "ab", "times": 2}, configuration={"greeting": "hi"}
        )
        assert result.json() == {"text": "abab", "configuration": {"greeting": "hi"}}

    async def test_configuration_omitted_when_absent(self, echo: Path) -> None:
        result = await ProcessInvoker().invoke(echo, "message", {"text": "a"})
        assert result.json()["configuration"] is None

    async def test_non_zero_exit_is_returned(self, echo: Path) -> None:
        result = await ProcessInvoker().invoke(echo, "fail", {})
        assert not result.succeeded
        assert result.exit_code == 5
        assert result.stdout == b'{"partial": true}'
        assert result.stderr == b"boom\n"

    async def test_large_output_on_both_streams(self, echo: Path) -> None:
        size = 1024 * 1024
        result = await ProcessInvoker(timeout=60).invoke(echo, "flood", size)
        assert result.succeeded
        assert len(result.stdout) == size
        assert len(result.stderr) == size

    async def test_non_json_stdout_decodes_to_none(self, echo: Path) -> None:
        result = await ProcessInvoker().invoke(echo, "flood", 3)
        assert result.stdout == b"xxx"
        assert result.json() is None

    async def test_describe_returns_metadata(self, reverse: Path) -> None:
        result = await ProcessInvoker().describe(reverse)
        assert result.succeeded
        assert json.loads(result.stdout)["name"] == "reverse"

    async def test_describe_closes_stdin(self, install_module: Callable[..., Path]) -> None:
        reads_stdin = install_module("reads_stdin")
        result = await asyncio.wait_for(ProcessInvoker().describe(reads_stdin), timeout=20)
        assert result.succeeded
        assert result.stdout == b""

    async def test_describe_is_bounded_without_action_timeout(
        self, install_module: Callable[..., Path]
    ) -> None:
        hangs = install_module("hangs")
        with pytest.raises(ExecutionTimeoutError):
            await ProcessInvoker(timeout=None).describe(hangs, timeout=0.5)


@pytest.mark.integration
class TestFailures:
    async def test_missing_executable(self, tmp_path: Path) -> None:
        with pytest.raises(ExecutionError) as exc_info:
            await ProcessInvoker().invoke(tmp_path / "ghost", "run", None, module="ghost")
        assert exc_info.value.module == "ghost"
        assert exc_info.value.action == "run"

    async def test_non_executable_file(self, tmp_path: Path) -> None:
        plain = tmp_path / "plain"
        plain.write_text("#!/bin/sh\nexit 0\n")
        with pytest.raises(ExecutionError):
            await ProcessInvoker().invoke(plain, "run", None)

    async def test_timeout_kills_the_process(self, echo: Path) -> None:
        with pytest.raises(ExecutionTimeoutError) as exc_info:
            await ProcessInvoker(timeout=0.5).invoke(echo, "sleep", 30)
        assert exc_info.value.timeout_seconds == 0.5
        assert exc_info.value.result is not None
        assert not exc_info.value.result.succeeded

    async def test_per_call_timeout_overrides_default(self, echo: Path) -> None:
        with pytest.raises(ExecutionTimeoutError):
            await ProcessInvoker(timeout=60).invoke(echo, "sleep", 30, timeout=0.5)
