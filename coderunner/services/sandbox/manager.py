"""Runner container lifecycle management."""

import asyncio
from datetime import datetime, timezone
from typing import Dict, Mapping, Optional, Union

import structlog

from ...config import settings
from ...models.sandbox import SandboxHandle, SandboxLimits
from ..archive import build_archive
from ..engine.base import ExecutionEngine, InstanceInfo, InstanceSpec

logger = structlog.get_logger(__name__)

KEEPALIVE_TEMPLATE = "mkdir -p {work_dir} && tail -f /dev/null"


class SandboxManager:
    """Manages the single named runner container.

    The container is created lazily on first use and reused by every
    submission. It is never removed by the request path.
    """

    def __init__(
        self,
        engine: ExecutionEngine,
        name: Optional[str] = None,
        image: Optional[str] = None,
        limits: Optional[SandboxLimits] = None,
    ):
        """Initialize the sandbox manager.

        Args:
            engine: Execution engine hosting the container
            name: Reserved container name
            image: Base image
            limits: Limits applied when the container is created
        """
        config = settings.sandbox
        self._engine = engine
        self._name = name or config.runner_name
        self._image = image or config.runner_image
        self._limits = limits or SandboxLimits(
            memory_mb=config.runner_memory_mb,
            pids_limit=config.runner_pids_limit,
        )
        self._work_dir = config.runner_work_dir
        self._cache_volume = config.runner_cache_volume
        self._cache_path = config.runner_cache_path
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return self._name

    @property
    def engine(self) -> ExecutionEngine:
        return self._engine

    def _handle(self, instance_id: str, limits: SandboxLimits) -> SandboxHandle:
        return SandboxHandle(
            container_id=instance_id,
            name=self._name,
            running=True,
            work_dir=self._work_dir,
            limits=limits,
        )

    async def _pull_image(self) -> None:
        """Refresh the base image; a cached copy is an acceptable substitute."""
        try:
            await self._engine.ensure_image(self._image)
        except Exception as e:
            logger.warning(
                "Image pull failed, using cached image", image=self._image, error=str(e)
            )

    async def ensure_running(self) -> SandboxHandle:
        """Make sure the runner container exists and is running.

        Idempotent: concurrent and repeated calls share one container and
        never change the limits it was created with.

        Returns:
            SandboxHandle for the running container

        Raises:
            ConnectivityError: If the engine cannot be reached
        """
        async with self._lock:
            await self._pull_image()

            existing = await self._engine.find_instance(self._name)
            if existing is None:
                return await self._create()

            if not existing.running:
                logger.info(
                    "Starting stopped runner container",
                    sandbox_id=existing.instance_id[:12],
                    status=existing.status,
                )
                await self._engine.start_instance(existing.instance_id)

            return self._handle(existing.instance_id, self._existing_limits(existing))

    def _existing_limits(self, existing: InstanceInfo) -> SandboxLimits:
        """An existing container keeps the limits it was created with."""
        if existing.limits is None:
            return self._limits
        if existing.limits != self._limits:
            logger.warning(
                "Runner container limits differ from configuration; "
                "remove the container to apply the new limits",
                sandbox_id=existing.instance_id[:12],
                actual_memory_mb=existing.limits.memory_mb,
                actual_pids_limit=existing.limits.pids_limit,
                configured_memory_mb=self._limits.memory_mb,
                configured_pids_limit=self._limits.pids_limit,
            )
        return existing.limits

    async def _create(self) -> SandboxHandle:
        labels = {
            "com.code-runner.managed": "true",
            "com.code-runner.type": "runner",
            "com.code-runner.created-at": datetime.now(timezone.utc).isoformat(),
        }
        spec = InstanceSpec(
            name=self._name,
            image=self._image,
            command=["sh", "-lc", KEEPALIVE_TEMPLATE.format(work_dir=self._work_dir)],
            working_dir=self._work_dir,
            limits=self._limits,
            volumes={self._cache_volume: self._cache_path},
            labels=labels,
        )
        instance_id = await self._engine.create_instance(spec)
        await self._engine.start_instance(instance_id)

        logger.info(
            "Created runner container",
            sandbox_id=instance_id[:12],
            name=self._name,
            image=self._image,
            memory_mb=self._limits.memory_mb,
            pids_limit=self._limits.pids_limit,
        )
        return self._handle(instance_id, self._limits)

    async def put_files(
        self,
        sandbox: SandboxHandle,
        files: Mapping[str, Union[str, bytes]],
        dest_path: Optional[str] = None,
    ) -> None:
        """Write files into the container, replacing earlier copies.

        Args:
            sandbox: Target container
            files: Relative path -> content
            dest_path: Existing directory to extract into (default: work dir)
        """
        archive = build_archive(files)
        await self._engine.put_archive(
            sandbox.container_id, dest_path or sandbox.work_dir, archive
        )
        logger.debug(
            "Copied files to runner container",
            sandbox_id=sandbox.short_id,
            files=sorted(files),
            archive_size=len(archive),
        )

    async def describe(self) -> Optional[InstanceInfo]:
        """Report the container's state without creating it."""
        return await self._engine.find_instance(self._name)

    async def remove(self) -> bool:
        """Remove the runner container.

        Returns:
            True if a container was removed, False otherwise
        """
        try:
            existing = await self._engine.find_instance(self._name)
            if existing is None:
                return False
            await self._engine.remove_instance(existing.instance_id)
            logger.info("Removed runner container", sandbox_id=existing.instance_id[:12])
            return True
        except Exception as e:
            logger.warning("Failed to remove runner container", name=self._name, error=str(e))
            return False

    def summary(self) -> Dict[str, object]:
        return {
            "name": self._name,
            "image": self._image,
            "memory_mb": self._limits.memory_mb,
            "pids_limit": self._limits.pids_limit,
            "network_disabled": self._limits.network_disabled,
        }
