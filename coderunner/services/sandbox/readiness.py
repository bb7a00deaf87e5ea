"""Waiting for the execution engine to answer pings."""

import asyncio
import time

import structlog

from ...models.errors import ConnectivityError
from ..engine.base import ExecutionEngine

logger = structlog.get_logger(__name__)


async def wait_ready(
    engine: ExecutionEngine,
    timeout: float,
    interval: float = 0.5,
) -> int:
    """
    Wait for the execution engine to answer a ping.

    Each ping is bounded by the time left before the deadline, so a ping
    that never answers counts as a failed attempt.

    Args:
        engine: Engine to ping
        timeout: Wall-clock deadline in seconds
        interval: Delay between attempts in seconds

    Returns:
        Number of attempts made

    Raises:
        ConnectivityError: If the engine is still unreachable at the deadline
    """
    deadline = time.monotonic() + timeout
    attempts = 0

    while True:
        attempts += 1
        remaining = max(deadline - time.monotonic(), 0)
        try:
            await asyncio.wait_for(engine.ping(), timeout=remaining)
            if attempts > 1:
                logger.info("Execution engine ready", attempts=attempts)
            return attempts
        except Exception as e:
            if isinstance(e, asyncio.TimeoutError):
                error = "ping did not answer"
            else:
                error = str(e) or type(e).__name__
            if time.monotonic() >= deadline:
                logger.error(
                    "Execution engine not ready before deadline",
                    attempts=attempts,
                    timeout=timeout,
                    error=error,
                )
                raise ConnectivityError(
                    f"Execution engine not reachable within {timeout:g}s: {error}"
                ) from e
            logger.debug("Execution engine ping failed", attempt=attempts, error=error)
        await asyncio.sleep(min(interval, max(deadline - time.monotonic(), 0)))
