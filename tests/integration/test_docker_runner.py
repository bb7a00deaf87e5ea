"""Integration tests against a real Docker daemon.

Uses a small Alpine image in place of the .NET SDK so the container
lifecycle, archive injection and exec timeouts can be checked quickly.
Skipped unless RUN_DOCKER_TESTS=1.
"""

import os
import time
import uuid

import pytest
import pytest_asyncio

from coderunner.config import settings
from coderunner.models.execution import ExecRequest
from coderunner.models.sandbox import SandboxLimits
from coderunner.services.engine import DockerEngine
from coderunner.services.sandbox import SandboxExecutor, SandboxManager, wait_ready

pytestmark = [
    pytest.mark.docker,
    pytest.mark.skipif(
        os.environ.get("RUN_DOCKER_TESTS") != "1",
        reason="set RUN_DOCKER_TESTS=1 to run against a Docker daemon",
    ),
]

IMAGE = os.environ.get("DOCKER_TEST_IMAGE", "alpine:3.20")


@pytest_asyncio.fixture
async def manager():
    engine = DockerEngine(settings.docker_host)
    await wait_ready(engine, timeout=10)
    manager = SandboxManager(
        engine,
        name=f"coderunner-it-{uuid.uuid4().hex[:8]}",
        image=IMAGE,
        limits=SandboxLimits(memory_mb=128, pids_limit=32),
    )
    try:
        yield manager
    finally:
        await manager.remove()
        engine.close()


@pytest.mark.asyncio
async def test_provision_is_idempotent(manager):
    first = await manager.ensure_running()
    second = await manager.ensure_running()
    assert first.container_id == second.container_id
    assert (await manager.describe()).running


@pytest.mark.asyncio
async def test_injected_files_are_readable(manager):
    sandbox = await manager.ensure_running()
    await manager.put_files(sandbox, {"Program.cs": "class P {}", "dir/a.txt": "nested"})

    executor = SandboxExecutor(manager.engine)
    result = await executor.execute(
        sandbox, ExecRequest(["cat", "Program.cs", "dir/a.txt"], "/work", 10)
    )

    assert result.exit_code == 0
    assert result.output == "class P {}nested"


@pytest.mark.asyncio
async def test_network_disabled(manager):
    sandbox = await manager.ensure_running()
    result = await SandboxExecutor(manager.engine).execute(
        sandbox, ExecRequest(["sh", "-c", "ip -o link | grep -v ' lo:' | wc -l"], "/work", 10)
    )
    assert result.output.strip() == "0"


@pytest.mark.asyncio
async def test_exec_timeout_is_bounded(manager):
    sandbox = await manager.ensure_running()

    start = time.monotonic()
    result = await SandboxExecutor(manager.engine).execute(
        sandbox, ExecRequest(["sleep", "30"], "/work", 1.0)
    )

    assert result.timed_out is True
    assert result.exit_code is None
    assert time.monotonic() - start < 5
