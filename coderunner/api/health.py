"""Health check and diagnostics endpoints."""

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse
import structlog

from ..dependencies.services import get_pipeline, get_sandbox_manager
from ..services.pipeline import BuildRunPipeline
from ..services.sandbox import SandboxManager

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/health", summary="Basic health check")
async def basic_health_check():
    """Liveness check that doesn't touch the execution engine."""
    return {"status": "healthy", "service": "code-runner"}


@router.get("/healthz", summary="Engine and runner status")
async def engine_health_check(
    manager: SandboxManager = Depends(get_sandbox_manager),
):
    """Report whether Docker answers and the state of the runner container.

    Always returns 200; failures are described in the body.
    """
    try:
        await manager.engine.ping()
        runner = await manager.describe()
        return {"docker": "ok", "runner": runner.status if runner else "missing"}
    except Exception as e:
        logger.warning("Engine health check failed", error=str(e))
        return {"docker": "error", "error": str(e)}


@router.get("/work", summary="List the runner work directory")
async def list_work_directory(
    pipeline: BuildRunPipeline = Depends(get_pipeline),
):
    """Plain-text listing of the work and output directories."""
    try:
        listing = await pipeline.list_workspace()
    except Exception as e:
        logger.warning("Work directory listing failed", error=str(e))
        listing = f"[/work error] {e}"
    return PlainTextResponse(listing)
