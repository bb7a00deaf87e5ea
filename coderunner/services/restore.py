"""Two-stage dependency restore.

Stage one resolves packages from the local cache only. Stage two, gated by
``runner_allow_restore``, retries against the online NuGet feed. Every
attempted stage's output is kept for the failure report.
"""

from dataclasses import dataclass, field
from typing import List, Optional

import structlog

from ..config import settings
from ..models.execution import ExecRequest, ExecutionResult, StageOutput
from ..models.sandbox import SandboxHandle
from .project import DotnetCommands
from .sandbox.executor import SandboxExecutor

logger = structlog.get_logger(__name__)


@dataclass
class RestoreResult:
    """Outcome of the restore phase."""

    stages: List[StageOutput] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return bool(self.stages) and self.stages[-1].result.succeeded

    @property
    def timed_out(self) -> bool:
        return any(s.result.timed_out for s in self.stages)

    @property
    def output(self) -> str:
        """Combined diagnostics of every attempted stage."""
        if len(self.stages) == 1:
            return self.stages[0].result.output
        return "\n".join(
            f"--- {s.stage} ---\n{s.result.output}" for s in self.stages
        )


class RestoreStrategy:
    """Offline restore with an optional online fallback."""

    def __init__(
        self,
        executor: SandboxExecutor,
        commands: DotnetCommands,
        allow_online: Optional[bool] = None,
        source: Optional[str] = None,
    ):
        self._executor = executor
        self._commands = commands
        self._allow_online = (
            settings.sandbox.runner_allow_restore if allow_online is None else allow_online
        )
        self._source = source or settings.sandbox.nuget_source

    @property
    def allow_online(self) -> bool:
        return self._allow_online

    async def restore(self, sandbox: SandboxHandle) -> RestoreResult:
        result = RestoreResult()

        offline = await self._run(
            sandbox,
            self._commands.restore_offline(),
            settings.resources.restore_timeout,
        )
        result.stages.append(StageOutput(stage="restore", result=offline))
        if offline.succeeded:
            return result

        if not self._allow_online:
            logger.info(
                "Offline restore failed, online fallback disabled",
                sandbox_id=sandbox.short_id,
                exit_code=offline.exit_code,
                timed_out=offline.timed_out,
            )
            return result

        logger.info(
            "Offline restore failed, retrying online",
            sandbox_id=sandbox.short_id,
            source=self._source,
        )
        online = await self._run(
            sandbox,
            self._commands.restore_online(self._source),
            settings.resources.online_restore_timeout,
        )
        result.stages.append(StageOutput(stage="restore-online", result=online))
        return result

    async def _run(self, sandbox: SandboxHandle, command, timeout) -> ExecutionResult:
        return await self._executor.execute(
            sandbox,
            ExecRequest(
                command=command,
                working_dir=self._commands.work_dir,
                timeout=timeout,
            ),
        )
