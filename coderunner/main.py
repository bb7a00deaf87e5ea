"""Main FastAPI application for the code runner."""

# Standard library imports
import os
from contextlib import asynccontextmanager

# Third-party imports
import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

# Local application imports
from .api import health, run
from .config import settings
from .dependencies.services import get_engine, get_sandbox_manager
from .middleware.logging import RequestLoggingMiddleware
from .models.errors import CodeRunnerException
from .utils.error_handlers import (
    code_runner_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    general_exception_handler,
)
from .utils.logging import setup_logging

# Setup logging
setup_logging()
logger = structlog.get_logger()


async def _warmup_runner() -> None:
    """Provision the runner container ahead of the first request."""
    try:
        sandbox = await get_sandbox_manager().ensure_running()
        logger.info("Runner container ready", sandbox_id=sandbox.short_id)
    except Exception as e:
        logger.error("Runner warmup failed", error=str(e))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info(
        "Starting code runner",
        docker_host=settings.sandbox.docker_host,
        runner=get_sandbox_manager().summary(),
        allow_online_restore=settings.runner_allow_restore,
        max_code_length=settings.max_code_length,
    )

    if settings.api_debug:
        logger.warning("Debug mode is enabled - disable in production")

    if settings.runner_warmup_on_startup:
        await _warmup_runner()

    yield

    logger.info("Shutting down code runner")
    try:
        get_engine().close()
    except Exception as e:
        logger.error("Error closing Docker client", error=str(e))


app = FastAPI(
    title="Code Runner API",
    description="Compiles and runs C# submissions in an isolated container",
    version="1.0.0",
    docs_url="/docs" if settings.enable_docs else None,
    redoc_url="/redoc" if settings.enable_docs else None,
    debug=settings.api_debug,
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)

# Register global error handlers
app.add_exception_handler(CodeRunnerException, code_runner_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

app.include_router(run.router, tags=["run"])
app.include_router(health.router, tags=["health"])

# Front-end, mounted last so API routes take precedence
if os.path.isdir(settings.static_dir):
    app.mount(
        "/",
        StaticFiles(directory=settings.static_dir, html=True),
        name="static",
    )


def run_server():
    logger.info(f"Starting HTTP server on {settings.api_host}:{settings.api_port}")
    uvicorn.run(
        "coderunner.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
        log_level=settings.log_level.lower(),
        access_log=settings.enable_access_logs,
        timeout_keep_alive=120,
    )


if __name__ == "__main__":
    run_server()
