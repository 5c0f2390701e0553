"""Environment-driven settings for the CLI, worker and queue backends."""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration.

    Every field can be overridden with a ``SERVAL_``-prefixed environment
    variable or a ``.env`` file in the working directory.
    """

    queue_backend: Literal["memory", "redis"] = Field(
        default="memory", description="Job queue implementation"
    )
    redis_url: str = Field(default="redis://localhost:6379/0")
    queue_key_prefix: str = Field(default="serval:jobs:")
    dequeue_timeout_seconds: float = Field(default=5.0, gt=0)
    error_backoff_seconds: float = Field(default=1.0, ge=0)
    max_retries: int = Field(default=3, ge=0)
    retry_failed_jobs: bool = Field(
        default=True, description="Requeue jobs left in failed status automatically"
    )
    default_timeout_seconds: int = Field(default=30, ge=1)
    catalog_path: Path | None = Field(
        default=None, description="YAML file with projects, APIs and scenarios"
    )
    reports_dir: Path = Field(default=Path("reports"))
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(
        env_prefix="SERVAL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
