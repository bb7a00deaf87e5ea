"""Sandbox (Docker runner container) configuration."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SandboxConfig(BaseSettings):
    """Runner container settings."""

    model_config = SettingsConfigDict(extra="ignore")

    docker_host: str = Field(default="unix:///var/run/docker.sock")
    runner_image: str = Field(
        default="mcr.microsoft.com/dotnet/nightly/sdk:10.0-preview"
    )
    runner_name: str = Field(default="dotnet-runner")
    runner_work_dir: str = Field(default="/work")
    runner_out_dir: str = Field(default="/out")
    runner_cache_volume: str = Field(default="runner-nuget")
    runner_cache_path: str = Field(default="/root/.nuget/packages")
    runner_memory_mb: int = Field(default=512, ge=64, le=8192)
    runner_pids_limit: int = Field(default=256, ge=16, le=4096)
    runner_allow_restore: bool = Field(default=False)
    nuget_source: str = Field(default="https://api.nuget.org/v3/index.json")
