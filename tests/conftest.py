"""Shared pytest fixtures for the actuator test suite."""

from __future__ import annotations

import stat
import sys
from pathlib import Path
from typing import AsyncGenerator, Callable

import pytest
import pytest_asyncio

from actuator.agent import Agent
from actuator.execution.invoker import ProcessInvoker
from actuator.jobs.manager import JobManager
from actuator.jobs.spool import SpoolStore
from actuator.modules.registry import ModuleRegistry
from actuator.protocol import ActionRequest

REPO_ROOT = Path(__file__).resolve().parent.parent
FIXTURE_MODULES = Path(__file__).resolve().parent / "fixtures" / "modules"
SHIPPED_MODULES = REPO_ROOT / "modules"


def _write_wrapper(directory: Path, name: str, script: Path) -> Path:
    """Install *script* as executable *name*, run by the test interpreter.

    A /bin/sh wrapper keeps the shebang short regardless of where the
    interpreter lives, and does not depend on the script's file mode.
    """
    directory.mkdir(parents=True, exist_ok=True)
    wrapper = directory / name
    wrapper.write_text(f'#!/bin/sh\nexec "{sys.executable}" "{script}" "$@"\n')
    wrapper.chmod(wrapper.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return wrapper


# ---------------------------------------------------------------------------
# Module directories
# ---------------------------------------------------------------------------


@pytest.fixture
def install_module(tmp_path: Path) -> Callable[..., Path]:
    """Return ``install(fixture_name, directory=None, as_name=None) -> Path``."""

    def _install(fixture: str, directory: Path | None = None, as_name: str | None = None) -> Path:
        if fixture == "reverse":
            script = SHIPPED_MODULES / "reverse"
        else:
            script = FIXTURE_MODULES / f"{fixture}.py"
        return _write_wrapper(directory or tmp_path / "modules", as_name or fixture, script)

    return _install


@pytest.fixture
def modules_dir(tmp_path: Path, install_module: Callable[..., Path]) -> Path:
    """A modules directory with the shipped reverse module and the echo module."""
    directory = tmp_path / "modules"
    install_module("reverse", directory)
    install_module("echo", directory)
    return directory


@pytest.fixture
def spool_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "spool"
    directory.mkdir()
    return directory


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


@pytest.fixture
def spool(spool_dir: Path) -> SpoolStore:
    return SpoolStore(spool_dir)


@pytest.fixture
def job_manager(spool: SpoolStore) -> JobManager:
    return JobManager(spool)


@pytest_asyncio.fixture
async def registry(modules_dir: Path) -> ModuleRegistry:
    reg = ModuleRegistry(invoker=ProcessInvoker(timeout=30))
    await reg.load_modules(modules_dir)
    return reg


@pytest_asyncio.fixture
async def agent(modules_dir: Path, spool_dir: Path) -> AsyncGenerator[Agent, None]:
    instance = Agent(modules_dir=modules_dir, spool_dir=spool_dir, action_timeout=30)
    await instance.start()
    yield instance
    await instance.shutdown()


@pytest.fixture
def reverse_request() -> ActionRequest:
    return ActionRequest(module="reverse", action="string", params="maradona")
