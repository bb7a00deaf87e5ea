"""Shared utilities for engine operations."""

import asyncio
from concurrent.futures import Executor
from typing import Optional


async def run_in_executor(func, *args, executor: Optional[Executor] = None):
    """
    Run a blocking function in a thread pool.

    Args:
        func: Blocking function to run
        *args: Arguments to pass to the function
        executor: Pool to run on (default: the loop's default executor)

    Returns:
        Result of the function
    """
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(executor, func, *args)
