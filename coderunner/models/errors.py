"""Error models and exception classes for the code runner."""

import time
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field
from enum import Enum


class ErrorType(str, Enum):
    """Error type enumeration."""

    VALIDATION = "validation"
    RESOURCE_NOT_FOUND = "resource_not_found"
    ARCHIVE_FORMAT = "archive_format"
    INFRASTRUCTURE = "infrastructure"
    INTERNAL_SERVER = "internal_server"
    SERVICE_UNAVAILABLE = "service_unavailable"


class ErrorDetail(BaseModel):
    """Detailed error information."""

    field: Optional[str] = Field(None, description="Field name for validation errors")
    message: str = Field(..., description="Human-readable error message")
    code: Optional[str] = Field(None, description="Machine-readable error code")


class ErrorResponse(BaseModel):
    """Standardized error response model."""

    model_config = ConfigDict(use_enum_values=True)

    error: str = Field(..., description="Main error message")
    error_type: ErrorType = Field(..., description="Error category")
    details: Optional[List[ErrorDetail]] = Field(
        None, description="Additional error details"
    )
    request_id: Optional[str] = Field(
        None, description="Request identifier for tracking"
    )
    timestamp: float = Field(default_factory=time.time, description="Error timestamp")


# Custom Exception Classes


class CodeRunnerException(Exception):
    """Base exception for the code runner."""

    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.INTERNAL_SERVER,
        status_code: int = 500,
        details: Optional[List[ErrorDetail]] = None,
        request_id: Optional[str] = None,
    ):
        self.message = message
        self.error_type = error_type
        self.status_code = status_code
        self.details = details or []
        self.request_id = request_id
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert exception to error response model."""
        return ErrorResponse(
            error=self.message,
            error_type=self.error_type,
            details=self.details if self.details else None,
            request_id=self.request_id,
        )


class ValidationError(CodeRunnerException):
    """Submitted code is empty or exceeds the size ceiling."""

    def __init__(self, message: str = "Validation failed", **kwargs):
        super().__init__(
            message=message, error_type=ErrorType.VALIDATION, status_code=400, **kwargs
        )


class ConnectivityError(CodeRunnerException):
    """Execution engine could not be reached."""

    def __init__(self, message: str = "Execution engine is unreachable", **kwargs):
        super().__init__(
            message=message,
            error_type=ErrorType.SERVICE_UNAVAILABLE,
            status_code=503,
            **kwargs,
        )


class ArchiveFormatError(CodeRunnerException):
    """An entry cannot be represented in the tar header format."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message=message,
            error_type=ErrorType.ARCHIVE_FORMAT,
            status_code=500,
            **kwargs,
        )


class InfrastructureError(CodeRunnerException):
    """The engine rejected a provisioning, injection or exec operation."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message=message,
            error_type=ErrorType.INFRASTRUCTURE,
            status_code=500,
            **kwargs,
        )
