"""Pytest configuration and shared fixtures."""

import os

import pytest

# Set test environment before importing config
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("LOG_FORMAT", "console")
os.environ.setdefault("RUNNER_ALLOW_RESTORE", "0")

from coderunner.models.sandbox import SandboxHandle, SandboxLimits
from coderunner.services.sandbox.manager import SandboxManager

from tests.fakes import FakeEngine, dotnet_handler


@pytest.fixture
def fake_engine():
    """Fake execution engine with default successful behaviour."""
    return FakeEngine(dotnet_handler())


@pytest.fixture
def sandbox_manager(fake_engine):
    """SandboxManager bound to the fake engine."""
    return SandboxManager(
        fake_engine,
        name="test-runner",
        image="runner-image:test",
        limits=SandboxLimits(memory_mb=256, pids_limit=64),
    )


@pytest.fixture
def sandbox_handle():
    """Handle for a running container."""
    return SandboxHandle(
        container_id="c" * 64,
        name="test-runner",
        running=True,
        work_dir="/work",
        limits=SandboxLimits(),
    )
