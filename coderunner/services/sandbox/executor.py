"""Command execution in the runner container.

Each call registers one exec, streams its combined output until
end-of-stream or until the wall-clock timeout elapses, then inspects the
exit status. Output past ``max_output_bytes`` is drained and discarded.
"""

import asyncio
import re
import time
from typing import List, Optional

import structlog

from ...config import settings
from ...models.execution import ExecRequest, ExecutionResult
from ...models.sandbox import SandboxHandle
from ..engine.base import ExecutionEngine

logger = structlog.get_logger(__name__)

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


class SandboxExecutor:
    """Handles command execution inside the runner container."""

    def __init__(self, engine: ExecutionEngine, max_output_bytes: Optional[int] = None):
        """Initialize executor.

        Args:
            engine: Execution engine hosting the container
            max_output_bytes: Output ceiling; longer output is truncated
        """
        self._engine = engine
        self._max_output_bytes = (
            max_output_bytes or settings.resources.max_output_bytes
        )

    async def execute(
        self, sandbox: SandboxHandle, request: ExecRequest
    ) -> ExecutionResult:
        """Run one command and capture its combined output.

        Engine errors while streaming end the read loop; whatever was read so
        far is returned with ``stream_error`` set. Errors creating, starting
        or inspecting the exec propagate.

        Returns:
            ExecutionResult; ``exit_code`` is None if the timeout elapsed
        """
        exec_id = await self._engine.exec_create(
            sandbox.container_id, request.command, request.working_dir
        )
        stream = await self._engine.exec_start(exec_id)

        # Held output never exceeds the ceiling plus one byte; the extra byte
        # tells _sanitize_output the stream was truncated.
        chunks: List[bytes] = []
        held = 0
        keep = self._max_output_bytes + 1
        streamed = 0
        timed_out = False
        stream_error: Optional[str] = None
        deadline = time.monotonic() + request.timeout

        try:
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    timed_out = True
                    break
                try:
                    chunk = await asyncio.wait_for(stream.read(), timeout=remaining)
                except asyncio.TimeoutError:
                    timed_out = True
                    break
                except Exception as e:
                    stream_error = str(e) or type(e).__name__
                    logger.warning(
                        "Exec output stream failed",
                        sandbox_id=sandbox.short_id,
                        exec_id=exec_id[:12],
                        error=stream_error,
                    )
                    break
                if not chunk:
                    break
                streamed += len(chunk)
                if held < keep:
                    chunk = chunk[: keep - held]
                    chunks.append(chunk)
                    held += len(chunk)
        finally:
            stream.close()

        exit_code: Optional[int] = None
        if timed_out:
            # The engine may still report a code; it is not trustworthy here
            logger.warning(
                "Exec timed out",
                sandbox_id=sandbox.short_id,
                command=request.command[0] if request.command else "",
                timeout=request.timeout,
            )
        else:
            status = await self._engine.exec_inspect(exec_id)
            exit_code = status.exit_code

        output = self._sanitize_output(b"".join(chunks))
        logger.debug(
            "Exec finished",
            sandbox_id=sandbox.short_id,
            exit_code=exit_code,
            timed_out=timed_out,
            output_length=len(output),
            streamed_bytes=streamed,
        )
        return ExecutionResult(
            exit_code=exit_code,
            output=output,
            timed_out=timed_out,
            stream_error=stream_error,
        )

    def _sanitize_output(self, output: bytes) -> str:
        """Decode output, strip control characters and cap its size."""
        truncated = len(output) > self._max_output_bytes
        if truncated:
            output = output[: self._max_output_bytes]

        output_str = output.decode("utf-8", errors="replace")
        output_str = _CONTROL_CHARS.sub("", output_str)
        if truncated:
            output_str += "\n[Output truncated - size limit exceeded]"
        return output_str
