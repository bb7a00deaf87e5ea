"""Compile-and-run endpoint."""

from fastapi import APIRouter, Depends
import structlog

from ..dependencies.services import get_pipeline
from ..middleware.logging import current_request_id
from ..models.errors import ValidationError
from ..models.execution import OutcomeKind, RunRequest, RunResponse
from ..services.pipeline import BuildRunPipeline

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post(
    "/run",
    response_model=RunResponse,
    response_model_by_alias=True,
    summary="Compile and run a C# program",
)
async def run_code(
    request: RunRequest,
    pipeline: BuildRunPipeline = Depends(get_pipeline),
) -> RunResponse:
    """Build ``request.code`` as Program.cs and run it in the runner container.

    Build failures and program exit codes are reported in the body with a
    200 status; only invalid submissions are rejected with 400.
    """
    outcome = await pipeline.run(request.code, request_id=current_request_id())
    if outcome.kind == OutcomeKind.VALIDATION_ERROR:
        raise ValidationError(message=outcome.message or "invalid code")
    return RunResponse.from_outcome(outcome)
