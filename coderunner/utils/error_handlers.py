"""Exception handlers producing ErrorResponse bodies.

From /run only submission validation arrives here. Build failures, program
exits and engine failures are outcomes reported in the RunResponse body.
"""

import traceback
from typing import List, Optional

import structlog
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..middleware.logging import current_request_id
from ..models.errors import CodeRunnerException, ErrorDetail, ErrorResponse, ErrorType

logger = structlog.get_logger(__name__)


def _respond(
    status_code: int,
    error: str,
    error_type: ErrorType,
    details: Optional[List[ErrorDetail]] = None,
) -> JSONResponse:
    body = ErrorResponse(
        error=error,
        error_type=error_type,
        details=details or None,
        request_id=current_request_id(),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump())


async def code_runner_exception_handler(
    request: Request, exc: CodeRunnerException
) -> JSONResponse:
    """Render a CodeRunnerException with its own status and error type."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "Request rejected",
        path=request.url.path,
        error_type=exc.error_type.value,
        status_code=exc.status_code,
        message=exc.message,
    )
    return _respond(exc.status_code, exc.message, exc.error_type, exc.details)


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Unknown routes and unsupported methods."""
    if exc.status_code == 404:
        error_type = ErrorType.RESOURCE_NOT_FOUND
    elif exc.status_code < 500:
        error_type = ErrorType.VALIDATION
    else:
        error_type = ErrorType.INTERNAL_SERVER
    return _respond(exc.status_code, str(exc.detail), error_type)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed /run bodies are a 400, like empty or oversized code."""
    details = [
        ErrorDetail(
            # Drop the leading "body" location segment
            field=".".join(str(part) for part in error["loc"][1:]) or None,
            message=error["msg"],
            code=error["type"],
        )
        for error in exc.errors()
    ]
    logger.warning(
        "Malformed request body",
        path=request.url.path,
        fields=[d.field for d in details],
    )
    return _respond(400, "Request validation failed", ErrorType.VALIDATION, details)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort; internal details stay in the log."""
    logger.error(
        "Unhandled exception",
        path=request.url.path,
        exception_type=type(exc).__name__,
        exception_message=str(exc),
        traceback=traceback.format_exc(),
    )
    return _respond(500, "An unexpected error occurred", ErrorType.INTERNAL_SERVER)
