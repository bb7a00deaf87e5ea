"""Runner container services.

This package provides the runner container functionality:
- manager.py: Container lifecycle management and file injection
- executor.py: Command execution in the container
- readiness.py: Waiting for the execution engine to answer
"""

from .manager import SandboxManager
from .executor import SandboxExecutor
from .readiness import wait_ready

__all__ = [
    "SandboxManager",
    "SandboxExecutor",
    "wait_ready",
]
