"""Configuration management for the code runner.

A single flat Settings class reads the environment (and an optional ``.env``
file); grouped views are exposed as properties.

Usage:
    from coderunner.config import settings

    settings.sandbox.runner_image
    settings.resources.run_timeout

    # Or flat access
    settings.runner_image
    settings.run_timeout
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .resources import ResourcesConfig
from .sandbox import SandboxConfig


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # API Configuration
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8080, ge=1, le=65535)
    api_debug: bool = Field(default=False)
    api_reload: bool = Field(default=False)
    enable_docs: bool = Field(default=True)
    static_dir: str = Field(
        default="wwwroot",
        description="Directory of static front-end files, served if present",
    )

    # Execution engine
    docker_host: str = Field(
        default="unix:///var/run/docker.sock",
        description="Docker engine endpoint address",
    )

    # Runner container
    runner_image: str = Field(
        default="mcr.microsoft.com/dotnet/nightly/sdk:10.0-preview",
        description="Base image for the runner container",
    )
    runner_name: str = Field(
        default="dotnet-runner",
        description="Reserved name of the shared runner container",
    )
    runner_work_dir: str = Field(default="/work")
    runner_out_dir: str = Field(default="/out")
    runner_cache_volume: str = Field(
        default="runner-nuget",
        description="Named volume holding the NuGet package cache",
    )
    runner_cache_path: str = Field(default="/root/.nuget/packages")
    runner_memory_mb: int = Field(default=512, ge=64, le=8192)
    runner_pids_limit: int = Field(default=256, ge=16, le=4096)
    runner_warmup_on_startup: bool = Field(
        default=False, description="Provision the runner container when the API starts"
    )
    runner_allow_restore: bool = Field(
        default=False,
        description="Retry a failed offline restore against the online NuGet feed",
    )
    nuget_source: str = Field(default="https://api.nuget.org/v3/index.json")

    # Input ceilings
    max_code_length: int = Field(default=200_000, ge=1)
    max_output_bytes: int = Field(default=1024 * 1024, ge=1024)

    # Timeouts (seconds)
    engine_ready_timeout: float = Field(default=20.0, gt=0)
    restore_timeout: float = Field(default=30.0, gt=0)
    online_restore_timeout: float = Field(default=45.0, gt=0)
    build_timeout: float = Field(default=40.0, gt=0)
    run_timeout: float = Field(default=10.0, gt=0)

    # Logging Configuration
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")
    enable_access_logs: bool = Field(default=True)

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        if v not in ("json", "console"):
            raise ValueError("log_format must be 'json' or 'console'")
        return v

    @property
    def sandbox(self) -> SandboxConfig:
        """Access runner container configuration group."""
        return SandboxConfig(
            docker_host=self.docker_host,
            runner_image=self.runner_image,
            runner_name=self.runner_name,
            runner_work_dir=self.runner_work_dir,
            runner_out_dir=self.runner_out_dir,
            runner_cache_volume=self.runner_cache_volume,
            runner_cache_path=self.runner_cache_path,
            runner_memory_mb=self.runner_memory_mb,
            runner_pids_limit=self.runner_pids_limit,
            runner_allow_restore=self.runner_allow_restore,
            nuget_source=self.nuget_source,
        )

    @property
    def resources(self) -> ResourcesConfig:
        """Access resource limits configuration group."""
        return ResourcesConfig(
            max_code_length=self.max_code_length,
            max_output_bytes=self.max_output_bytes,
            engine_ready_timeout=self.engine_ready_timeout,
            restore_timeout=self.restore_timeout,
            online_restore_timeout=self.online_restore_timeout,
            build_timeout=self.build_timeout,
            run_timeout=self.run_timeout,
        )


# Global settings instance
settings = Settings()

__all__ = [
    "Settings",
    "settings",
    "SandboxConfig",
    "ResourcesConfig",
]
