"""Execution engine backends.

- base.py: ExecutionEngine protocol and its value types
- docker.py: Docker SDK implementation
- utils.py: thread pool helper for blocking SDK calls
"""

from .base import (
    ExecStatus,
    ExecStream,
    ExecutionEngine,
    InstanceInfo,
    InstanceSpec,
)
from .docker import DockerEngine, DockerExecStream

__all__ = [
    "ExecStatus",
    "ExecStream",
    "ExecutionEngine",
    "InstanceInfo",
    "InstanceSpec",
    "DockerEngine",
    "DockerExecStream",
]
