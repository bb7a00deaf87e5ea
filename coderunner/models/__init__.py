"""Data models for the code runner."""

from .execution import (
    SourceSubmission,
    ExecRequest,
    ExecutionResult,
    PipelineState,
    OutcomeKind,
    StageOutput,
    RunOutcome,
    RunRequest,
    RunResponse,
)
from .sandbox import SandboxHandle, SandboxLimits
from .errors import (
    ErrorType,
    ErrorDetail,
    ErrorResponse,
    CodeRunnerException,
    ValidationError,
    ConnectivityError,
    ArchiveFormatError,
    InfrastructureError,
)

__all__ = [
    # Execution models
    "SourceSubmission",
    "ExecRequest",
    "ExecutionResult",
    "PipelineState",
    "OutcomeKind",
    "StageOutput",
    "RunOutcome",
    "RunRequest",
    "RunResponse",
    # Sandbox models
    "SandboxHandle",
    "SandboxLimits",
    # Error models
    "ErrorType",
    "ErrorDetail",
    "ErrorResponse",
    "CodeRunnerException",
    "ValidationError",
    "ConnectivityError",
    "ArchiveFormatError",
    "InfrastructureError",
]
