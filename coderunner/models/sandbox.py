"""Runner container data models.

SandboxHandle is the handle used throughout the codebase to reference the
running runner container. Its limits are the ones the container was
created with, which can differ from the current configuration.
"""

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class SandboxLimits:
    """Resource and isolation limits applied at container creation."""

    memory_mb: int = 512
    pids_limit: int = 256
    cap_drop: Tuple[str, ...] = ("ALL",)
    network_disabled: bool = True

    @property
    def memory_bytes(self) -> int:
        return self.memory_mb * 1024 * 1024


@dataclass
class SandboxHandle:
    """Represents the runner container."""

    container_id: str
    name: str
    running: bool
    work_dir: str
    limits: SandboxLimits

    @property
    def short_id(self) -> str:
        return self.container_id[:12]
