"""Services for the code runner."""

from .archive import TarArchiveWriter, build_archive
from .pipeline import BuildRunPipeline
from .restore import RestoreStrategy, RestoreResult
from .sandbox import SandboxManager, SandboxExecutor, wait_ready

__all__ = [
    "TarArchiveWriter",
    "build_archive",
    "BuildRunPipeline",
    "RestoreStrategy",
    "RestoreResult",
    "SandboxManager",
    "SandboxExecutor",
    "wait_ready",
]
