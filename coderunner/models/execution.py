"""Execution data models.

Internal pipeline values are plain dataclasses; the HTTP request and
response bodies are pydantic models.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


@dataclass
class SourceSubmission:
    """Source text submitted for a single build/run."""

    code: str
    size_limit: int


@dataclass
class ExecRequest:
    """One command to run inside the runner container."""

    command: List[str]
    working_dir: str
    timeout: float


@dataclass
class ExecutionResult:
    """Outcome of a single exec.

    ``exit_code`` is None when ``timed_out`` is set, since the engine's
    report cannot be trusted once the local wait was abandoned.
    ``stream_error`` is set when reading output failed part way and
    ``output`` is therefore partial.
    """

    exit_code: Optional[int]
    output: str
    timed_out: bool = False
    stream_error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return not self.timed_out and self.exit_code == 0

    @property
    def partial(self) -> bool:
        return self.stream_error is not None


class PipelineState(str, Enum):
    """Build/run pipeline states."""

    IDLE = "idle"
    PROBING = "probing"
    PROVISIONING = "provisioning"
    INJECTING = "injecting"
    RESTORING = "restoring"
    BUILDING = "building"
    RUNNING = "running"
    DONE = "done"
    VALIDATION_FAILED = "validation_failed"
    BUILD_FAILED = "build_failed"
    INFRA_FAILED = "infra_failed"


class OutcomeKind(str, Enum):
    """Terminal outcome categories reported to the caller."""

    VALIDATION_ERROR = "validation_error"
    BUILD_ERROR = "build_error"
    RUN_RESULT = "run_result"
    INFRA_ERROR = "infra_error"


@dataclass
class StageOutput:
    """Captured output of one executed stage."""

    stage: str
    result: ExecutionResult


@dataclass
class RunOutcome:
    """Structured terminal outcome of the pipeline."""

    kind: OutcomeKind
    state: PipelineState
    output: str = ""
    exit_code: Optional[int] = None
    timed_out: bool = False
    message: Optional[str] = None
    stages: List[StageOutput] = field(default_factory=list)

    @property
    def stage_outputs(self) -> Dict[str, str]:
        return {s.stage: s.result.output for s in self.stages}


class RunRequest(BaseModel):
    """Body of POST /run."""

    code: str = Field(..., description="C# source for Program.cs")


class RunResponse(BaseModel):
    """Body returned by POST /run."""

    model_config = ConfigDict(populate_by_name=True)

    exit_code: Optional[int] = Field(None, alias="exitCode")
    output: str = ""
    build_error: bool = Field(False, alias="buildError")
    timed_out: bool = Field(False, alias="timedOut")
    partial_output: bool = Field(False, alias="partialOutput")
    error: Optional[str] = None

    @classmethod
    def from_outcome(cls, outcome: RunOutcome) -> "RunResponse":
        partial = any(s.result.partial for s in outcome.stages)
        if outcome.kind == OutcomeKind.BUILD_ERROR:
            return cls(
                output=outcome.output,
                build_error=True,
                timed_out=outcome.timed_out,
                partial_output=partial,
            )
        if outcome.kind == OutcomeKind.RUN_RESULT:
            return cls(
                exit_code=outcome.exit_code,
                output=outcome.output,
                timed_out=outcome.timed_out,
                partial_output=partial,
            )
        return cls(error=outcome.message or "error", output=outcome.output)
