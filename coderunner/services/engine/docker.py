"""Docker-backed execution engine.

Wraps the blocking ``docker`` SDK, running every call in a thread pool so
the event loop is never stalled. Exec output reads use their own small pool,
so a read left blocked by a timed-out exec cannot starve control calls such
as ping.
"""

import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import List, Optional

import docker
import structlog
from docker.errors import APIError, DockerException, ImageNotFound
from requests.exceptions import RequestException

from ...models.errors import ConnectivityError, InfrastructureError
from ...models.sandbox import SandboxLimits
from .base import ExecStatus, InstanceInfo, InstanceSpec
from .utils import run_in_executor

logger = structlog.get_logger(__name__)

STREAM_READERS = 4


def _limits_from_host_config(host_config: dict) -> SandboxLimits:
    """Limits a container was actually created with."""
    return SandboxLimits(
        memory_mb=(host_config.get("Memory") or 0) // (1024 * 1024),
        pids_limit=host_config.get("PidsLimit") or 0,
        cap_drop=tuple(host_config.get("CapDrop") or ()),
        network_disabled=host_config.get("NetworkMode") == "none",
    )


class DockerExecStream:
    """Reads the multiplexed output of a non-TTY exec as raw chunks.

    ``stream`` is docker's CancellableStream. Closing it shuts the exec
    socket down, which wakes a read still blocked in a pool thread.
    """

    def __init__(self, stream, executor: Optional[Executor] = None):
        self._stream = stream
        self._iter = iter(stream)
        self._executor = executor

    async def read(self) -> bytes:
        return await run_in_executor(next, self._iter, b"", executor=self._executor)

    def close(self) -> None:
        close = getattr(self._stream, "close", None)
        if close is None:
            logger.warning(
                "Exec stream cannot be closed", stream_type=type(self._stream).__name__
            )
            return
        try:
            close()
        except Exception as e:
            logger.warning("Failed to close exec stream", error=str(e))


class DockerEngine:
    """Execution engine backed by a Docker daemon."""

    def __init__(self, base_url: str, timeout: int = 60):
        self._base_url = base_url
        self._timeout = timeout
        self._client: Optional[docker.DockerClient] = None
        self._client_lock = threading.Lock()
        self._stream_pool = ThreadPoolExecutor(
            max_workers=STREAM_READERS, thread_name_prefix="exec-stream"
        )

    def _get_client(self) -> docker.DockerClient:
        with self._client_lock:
            if self._client is None:
                self._client = docker.DockerClient(
                    base_url=self._base_url, timeout=self._timeout
                )
                logger.info("Docker client initialized", base_url=self._base_url)
            return self._client

    async def _call(self, operation: str, func, *args):
        """Run a blocking SDK call, translating SDK failures."""

        def invoke():
            return func(self._get_client(), *args)

        try:
            return await run_in_executor(invoke)
        except APIError as e:
            raise InfrastructureError(f"Docker {operation} failed: {e.explanation or e}")
        except (DockerException, RequestException, OSError) as e:
            raise ConnectivityError(
                f"Docker engine unreachable at {self._base_url}: {e}"
            )

    async def ping(self) -> None:
        await self._call("ping", lambda c: c.ping())

    async def ensure_image(self, image: str) -> None:
        def pull(client):
            try:
                client.images.pull(image)
            except ImageNotFound:
                # A locally built image with no registry counterpart is fine
                client.images.get(image)

        await self._call("image pull", pull)

    async def find_instance(self, name: str) -> Optional[InstanceInfo]:
        def lookup(client):
            # The name filter is a substring match; require an exact name
            for c in client.containers.list(all=True, filters={"name": name}):
                if c.name == name:
                    return InstanceInfo(
                        instance_id=c.id,
                        name=c.name,
                        status=c.status,
                        limits=_limits_from_host_config(c.attrs.get("HostConfig") or {}),
                    )
            return None

        return await self._call("container lookup", lookup)

    async def create_instance(self, spec: InstanceSpec) -> str:
        def create(client):
            container = client.containers.create(
                image=spec.image,
                command=spec.command,
                name=spec.name,
                working_dir=spec.working_dir,
                network_mode="none" if spec.limits.network_disabled else None,
                cap_drop=list(spec.limits.cap_drop),
                mem_limit=spec.limits.memory_bytes,
                pids_limit=spec.limits.pids_limit,
                volumes={
                    volume: {"bind": path, "mode": "rw"}
                    for volume, path in spec.volumes.items()
                },
                labels=spec.labels,
            )
            return container.id

        return await self._call("container create", create)

    async def start_instance(self, instance_id: str) -> None:
        await self._call("container start", lambda c: c.api.start(instance_id))

    async def remove_instance(self, instance_id: str) -> None:
        await self._call(
            "container remove",
            lambda c: c.api.remove_container(instance_id, force=True),
        )

    async def put_archive(self, instance_id: str, path: str, data: bytes) -> None:
        ok = await self._call(
            "archive extraction", lambda c: c.api.put_archive(instance_id, path, data)
        )
        if not ok:
            raise InfrastructureError(f"Docker rejected archive extraction into {path}")

    async def exec_create(
        self, instance_id: str, command: List[str], working_dir: str
    ) -> str:
        def create(client):
            return client.api.exec_create(
                instance_id,
                command,
                stdout=True,
                stderr=True,
                stdin=False,
                tty=False,
                workdir=working_dir,
            )["Id"]

        return await self._call("exec create", create)

    async def exec_start(self, exec_id: str) -> DockerExecStream:
        stream = await self._call(
            "exec start",
            lambda c: c.api.exec_start(exec_id, tty=False, stream=True, demux=False),
        )
        return DockerExecStream(stream, self._stream_pool)

    async def exec_inspect(self, exec_id: str) -> ExecStatus:
        info = await self._call("exec inspect", lambda c: c.api.exec_inspect(exec_id))
        return ExecStatus(exit_code=info.get("ExitCode"))

    def close(self) -> None:
        with self._client_lock:
            if self._client is not None:
                self._client.close()
                self._client = None
        self._stream_pool.shutdown(wait=False)
