"""Execution engine protocol.

Any backend that can ping, pull images, manage one named container, extract
an archive into it and run streamed execs can host the runner.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol

from ...models.sandbox import SandboxLimits


@dataclass
class InstanceInfo:
    """What the engine reports about an existing container."""

    instance_id: str
    name: str
    status: str
    limits: Optional[SandboxLimits] = None  # as created, when the engine reports them

    @property
    def running(self) -> bool:
        return self.status.lower() == "running"


@dataclass
class InstanceSpec:
    """Everything needed to create the runner container."""

    name: str
    image: str
    command: List[str]
    working_dir: str
    limits: SandboxLimits
    volumes: Dict[str, str] = field(default_factory=dict)  # volume name -> mount path
    labels: Dict[str, str] = field(default_factory=dict)


@dataclass
class ExecStatus:
    """Exec inspection result."""

    exit_code: Optional[int]


class ExecStream(Protocol):
    """Combined stdout/stderr of a started exec."""

    async def read(self) -> bytes:
        """Return the next chunk, or b"" at end-of-stream."""
        ...

    def close(self) -> None:
        ...


class ExecutionEngine(Protocol):
    """Container engine operations used by the runner."""

    async def ping(self) -> None:
        """Raise ConnectivityError if the engine is unreachable."""
        ...

    async def ensure_image(self, image: str) -> None:
        ...

    async def find_instance(self, name: str) -> Optional[InstanceInfo]:
        ...

    async def create_instance(self, spec: InstanceSpec) -> str:
        """Create a container and return its id."""
        ...

    async def start_instance(self, instance_id: str) -> None:
        ...

    async def remove_instance(self, instance_id: str) -> None:
        ...

    async def put_archive(self, instance_id: str, path: str, data: bytes) -> None:
        """Extract a tar stream into ``path`` inside the container."""
        ...

    async def exec_create(
        self, instance_id: str, command: List[str], working_dir: str
    ) -> str:
        """Register a command and return the exec id."""
        ...

    async def exec_start(self, exec_id: str) -> ExecStream:
        ...

    async def exec_inspect(self, exec_id: str) -> ExecStatus:
        ...
