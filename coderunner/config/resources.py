"""Resource limits configuration."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ResourcesConfig(BaseSettings):
    """Input ceilings and per-phase timeouts."""

    model_config = SettingsConfigDict(extra="ignore")

    # Input Limits
    max_code_length: int = Field(default=200_000, ge=1)
    max_output_bytes: int = Field(default=1024 * 1024, ge=1024)

    # Timeouts (seconds)
    engine_ready_timeout: float = Field(default=20.0, gt=0)
    restore_timeout: float = Field(default=30.0, gt=0)
    online_restore_timeout: float = Field(default=45.0, gt=0)
    build_timeout: float = Field(default=40.0, gt=0)
    run_timeout: float = Field(default=10.0, gt=0)
