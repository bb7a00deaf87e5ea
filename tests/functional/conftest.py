"""Functional test fixtures for live API testing.

These tests run against a real API endpoint backed by a Docker daemon.
They are skipped unless RUN_FUNCTIONAL_TESTS=1. Configure via environment
variables:
    API_BASE: Base URL (default: http://localhost:8080)
    API_TIMEOUT: Request timeout in seconds (default: 180)

Example:
    RUN_FUNCTIONAL_TESTS=1 API_BASE="http://localhost:8080" \
    pytest tests/functional/ -v
"""

import os
from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio

API_BASE = os.environ.get("API_BASE", "http://localhost:8080")
# The first submission may pull the SDK image and restore packages
API_TIMEOUT = int(os.environ.get("API_TIMEOUT", "180"))


def pytest_collection_modifyitems(config, items):
    if os.environ.get("RUN_FUNCTIONAL_TESTS") == "1":
        return
    skip = pytest.mark.skip(reason="set RUN_FUNCTIONAL_TESTS=1 to run live API tests")
    for item in items:
        if "tests/functional" in str(item.path).replace(os.sep, "/"):
            item.add_marker(skip)


@pytest.fixture(scope="session")
def api_base() -> str:
    """API base URL."""
    return API_BASE.rstrip("/")


@pytest_asyncio.fixture
async def async_client(api_base: str) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Async HTTP client for functional tests."""
    client = httpx.AsyncClient(base_url=api_base, timeout=API_TIMEOUT)
    try:
        yield client
    finally:
        try:
            await client.aclose()
        except RuntimeError:
            # Ignore "Event loop is closed" errors during teardown
            pass
