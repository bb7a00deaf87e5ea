"""Build/run pipeline - compiles and runs one submission in the runner.

The pipeline is a small state machine:

    IDLE -> PROBING -> PROVISIONING -> INJECTING -> RESTORING -> BUILDING
         -> RUNNING -> DONE

with terminal error states VALIDATION_FAILED, BUILD_FAILED and
INFRA_FAILED. A non-zero program exit still ends in DONE.

Usage:
    pipeline = BuildRunPipeline(sandbox_manager)
    outcome = await pipeline.run(code)

``run()`` never raises; every failure is reported as a RunOutcome.
"""

import asyncio
import time
import traceback
import uuid
from dataclasses import dataclass, field
from typing import List, Optional

import structlog

from ..config import settings
from ..models.errors import CodeRunnerException, ValidationError
from ..models.execution import (
    ExecRequest,
    ExecutionResult,
    OutcomeKind,
    PipelineState,
    RunOutcome,
    SourceSubmission,
    StageOutput,
)
from ..models.sandbox import SandboxHandle
from .project import DotnetCommands, project_files
from .restore import RestoreStrategy
from .sandbox.executor import SandboxExecutor
from .sandbox.manager import SandboxManager
from .sandbox.readiness import wait_ready

logger = structlog.get_logger(__name__)

KILL_TIMEOUT = 5.0


@dataclass
class PipelineContext:
    """State carried through one pipeline run."""

    submission: SourceSubmission
    request_id: str
    state: PipelineState = PipelineState.IDLE
    sandbox: Optional[SandboxHandle] = None
    stages: List[StageOutput] = field(default_factory=list)
    started_at: float = field(default_factory=time.monotonic)

    @property
    def elapsed_ms(self) -> float:
        return round((time.monotonic() - self.started_at) * 1000, 2)


class BuildRunPipeline:
    """Coordinates validate -> wait for engine -> provision -> inject -> restore ->
    build -> run against the shared runner container.

    The container's work directory, output directory and package cache are
    shared, so everything from injection to the end of the run holds a
    single-flight lock; concurrent submissions queue behind it instead of
    overwriting each other's files.
    """

    def __init__(
        self,
        sandbox_manager: SandboxManager,
        executor: Optional[SandboxExecutor] = None,
        restore_strategy: Optional[RestoreStrategy] = None,
        commands: Optional[DotnetCommands] = None,
        size_limit: Optional[int] = None,
        ready_timeout: Optional[float] = None,
    ):
        self.sandbox_manager = sandbox_manager
        self.engine = sandbox_manager.engine
        self.executor = executor or SandboxExecutor(self.engine)
        self.commands = commands or DotnetCommands(
            settings.sandbox.runner_work_dir, settings.sandbox.runner_out_dir
        )
        self.restore_strategy = restore_strategy or RestoreStrategy(
            self.executor, self.commands
        )
        self.size_limit = size_limit or settings.resources.max_code_length
        self.ready_timeout = ready_timeout or settings.resources.engine_ready_timeout
        self._exec_lock = asyncio.Lock()

    async def run(
        self,
        code: str,
        size_limit: Optional[int] = None,
        request_id: str = "",
    ) -> RunOutcome:
        """Build and run one submission.

        Args:
            code: Source for Program.cs
            size_limit: Maximum accepted code length in characters
            request_id: Optional request ID for logging

        Returns:
            RunOutcome describing the terminal state
        """
        ctx = PipelineContext(
            submission=SourceSubmission(code=code, size_limit=size_limit or self.size_limit),
            request_id=request_id or uuid.uuid4().hex[:12],
        )

        try:
            # Step 1: Validate (no engine contact)
            self._validate(ctx)

            # Step 2: Wait for the engine
            self._transition(ctx, PipelineState.PROBING)
            await wait_ready(self.engine, self.ready_timeout)

            # Step 3: Make sure the runner container is up
            self._transition(ctx, PipelineState.PROVISIONING)
            ctx.sandbox = await self.sandbox_manager.ensure_running()

            async with self._exec_lock:
                return await self._build_and_run(ctx)

        except ValidationError as e:
            self._transition(ctx, PipelineState.VALIDATION_FAILED)
            logger.info("Submission rejected", request_id=ctx.request_id, reason=e.message)
            return RunOutcome(
                kind=OutcomeKind.VALIDATION_ERROR,
                state=ctx.state,
                message=e.message,
            )
        except CodeRunnerException as e:
            return self._infra_failure(ctx, e.message, e)
        except Exception as e:
            logger.error(
                "Unexpected pipeline failure",
                request_id=ctx.request_id,
                state=ctx.state.value,
                exception_type=type(e).__name__,
                traceback=traceback.format_exc(),
            )
            return self._infra_failure(ctx, "An unexpected error occurred", e)

    def _validate(self, ctx: PipelineContext) -> None:
        code = ctx.submission.code
        if code is None or not code.strip():
            raise ValidationError("empty code")
        if len(code) > ctx.submission.size_limit:
            raise ValidationError(
                f"code exceeds {ctx.submission.size_limit} characters"
            )

    async def _build_and_run(self, ctx: PipelineContext) -> RunOutcome:
        sandbox = ctx.sandbox

        # Step 4: Inject the manifest and source, replacing the previous run's
        self._transition(ctx, PipelineState.INJECTING)
        await self.sandbox_manager.put_files(sandbox, project_files(ctx.submission.code))

        # Step 5: Restore packages
        self._transition(ctx, PipelineState.RESTORING)
        restore = await self.restore_strategy.restore(sandbox)
        ctx.stages.extend(restore.stages)
        if not restore.succeeded:
            return self._build_failure(ctx, restore.output, restore.timed_out)

        # Step 6: Compile
        timeouts = settings.resources
        self._transition(ctx, PipelineState.BUILDING)
        build = await self._exec(ctx, "build", self.commands.build(), timeouts.build_timeout)
        if not build.succeeded:
            return self._build_failure(ctx, build.output, build.timed_out)

        # Step 7: Run
        self._transition(ctx, PipelineState.RUNNING)
        run = await self._exec(ctx, "run", self.commands.run(), timeouts.run_timeout)
        if run.timed_out:
            await self._kill_run(sandbox)

        self._transition(ctx, PipelineState.DONE)
        logger.info(
            "Submission finished",
            request_id=ctx.request_id,
            exit_code=run.exit_code,
            timed_out=run.timed_out,
            partial_output=run.partial,
            duration_ms=ctx.elapsed_ms,
        )
        return RunOutcome(
            kind=OutcomeKind.RUN_RESULT,
            state=ctx.state,
            output=run.output,
            exit_code=run.exit_code,
            timed_out=run.timed_out,
            stages=ctx.stages,
        )

    async def _exec(
        self, ctx: PipelineContext, stage: str, command: List[str], timeout: float
    ) -> ExecutionResult:
        result = await self.executor.execute(
            ctx.sandbox,
            ExecRequest(
                command=command,
                working_dir=self.commands.work_dir,
                timeout=timeout,
            ),
        )
        ctx.stages.append(StageOutput(stage=stage, result=result))
        return result

    async def _kill_run(self, sandbox: SandboxHandle) -> None:
        """Best-effort termination of a run that outlived its timeout."""
        try:
            await self.executor.execute(
                sandbox,
                ExecRequest(
                    command=self.commands.kill_run(),
                    working_dir=self.commands.work_dir,
                    timeout=KILL_TIMEOUT,
                ),
            )
        except Exception as e:
            logger.warning(
                "Failed to kill timed out run", sandbox_id=sandbox.short_id, error=str(e)
            )

    async def list_workspace(self) -> str:
        """Return a listing of the work and output directories."""
        await wait_ready(self.engine, min(self.ready_timeout, 10.0))
        sandbox = await self.sandbox_manager.ensure_running()
        async with self._exec_lock:
            result = await self.executor.execute(
                sandbox,
                ExecRequest(
                    command=self.commands.list_workspace(),
                    working_dir=self.commands.work_dir,
                    timeout=10.0,
                ),
            )
        return result.output

    def _transition(self, ctx: PipelineContext, state: PipelineState) -> None:
        logger.debug(
            "Pipeline transition",
            request_id=ctx.request_id,
            from_state=ctx.state.value,
            to_state=state.value,
        )
        ctx.state = state

    def _build_failure(
        self, ctx: PipelineContext, output: str, timed_out: bool
    ) -> RunOutcome:
        failed_in = ctx.state.value
        self._transition(ctx, PipelineState.BUILD_FAILED)
        logger.info(
            "Build failed",
            request_id=ctx.request_id,
            phase=failed_in,
            timed_out=timed_out,
            duration_ms=ctx.elapsed_ms,
        )
        return RunOutcome(
            kind=OutcomeKind.BUILD_ERROR,
            state=ctx.state,
            output=output,
            timed_out=timed_out,
            stages=ctx.stages,
        )

    def _infra_failure(
        self, ctx: PipelineContext, message: str, error: Exception
    ) -> RunOutcome:
        failed_in = ctx.state.value
        self._transition(ctx, PipelineState.INFRA_FAILED)
        logger.error(
            "Infrastructure failure",
            request_id=ctx.request_id,
            phase=failed_in,
            error=str(error),
            exception_type=type(error).__name__,
        )
        return RunOutcome(
            kind=OutcomeKind.INFRA_ERROR,
            state=ctx.state,
            message=message,
            stages=ctx.stages,
        )
