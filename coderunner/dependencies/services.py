"""Service dependency injection for the code runner API."""

# Standard library imports
from functools import lru_cache

# Third-party imports
import structlog

# Local application imports
from ..config import settings
from ..services.engine import DockerEngine, ExecutionEngine
from ..services.pipeline import BuildRunPipeline
from ..services.sandbox import SandboxManager

logger = structlog.get_logger(__name__)


@lru_cache()
def get_engine() -> ExecutionEngine:
    """Get the execution engine for the configured Docker endpoint."""
    logger.info("Using Docker engine", docker_host=settings.sandbox.docker_host)
    return DockerEngine(settings.sandbox.docker_host)


@lru_cache()
def get_sandbox_manager() -> SandboxManager:
    """Get the process-wide runner container manager."""
    return SandboxManager(get_engine())


@lru_cache()
def get_pipeline() -> BuildRunPipeline:
    """Get the build/run pipeline bound to the shared runner container."""
    return BuildRunPipeline(get_sandbox_manager())
