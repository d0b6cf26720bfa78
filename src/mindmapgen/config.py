"""Application configuration.

Configuration is loaded from environment variables. For local development, you can provide a
`.env` file and set `MINDMAPGEN_ENV_FILE` to point to it.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from mindmapgen.core.retry import RetryPolicy


class Settings(BaseSettings):
    """Mind map generator settings.

    All fields are environment-configurable. Prefix is `MINDMAPGEN_`.
    """

    model_config = SettingsConfigDict(
        env_prefix="MINDMAPGEN_",
        env_file=None,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    app_env: Literal["dev", "prod"] = Field(default="dev")
    log_level: str = Field(default="INFO")

    # API
    api_key: str | None = Field(default=None)
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8080, ge=1, le=65535)
    # Requests per client per window; 0 disables rate limiting
    rate_limit_max: int = Field(default=100, ge=0)
    rate_limit_window_s: float = Field(default=60.0, gt=0.0)

    # LLM
    openai_api_key: str | None = Field(default=None)
    openai_base_url: str | None = Field(default=None)
    openai_model: str = Field(default="gpt-3.5-turbo")
    openai_temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    openai_timeout_s: float = Field(default=30.0, gt=0.0)

    # Storage
    storage_backend: Literal["local", "gcs"] = Field(default="local")
    local_storage_path: Path = Field(default=Path("data/mindmaps"))
    gcp_project_id: str | None = Field(default=None)
    gcp_bucket_name: str | None = Field(default=None)
    gcp_key_filename: str | None = Field(default=None)
    gcp_prefix: str = Field(default="")

    # Batch files
    input_csv_path: Path = Field(default=Path("data/input_context_v2.csv"))
    output_csv_path: Path = Field(default=Path("/tmp/output_results.csv"))

    # Batch orchestration
    max_concurrent: int = Field(default=5, ge=1, le=100)
    batch_size: int | None = Field(default=None, ge=1)
    call_timeout_s: float = Field(default=30.0, gt=0.0)

    # Retry policy (seconds)
    retry_retries: int = Field(default=3, ge=0, le=10)
    retry_factor: float = Field(default=2.0, ge=1.0)
    retry_min_timeout_s: float = Field(default=1.0, ge=0.0)
    retry_max_timeout_s: float = Field(default=10.0, ge=0.0)

    def retry_policy(self) -> RetryPolicy:
        """Build the retry policy used around each generation call."""

        return RetryPolicy(
            retries=self.retry_retries,
            factor=self.retry_factor,
            min_timeout=self.retry_min_timeout_s,
            max_timeout=self.retry_max_timeout_s,
        )

    @property
    def api_auth_enabled(self) -> bool:
        """Whether a usable API key is configured."""

        return bool(self.api_key) and len(self.api_key or "") >= 8


def load_settings() -> Settings:
    """Load settings from env.

    If `MINDMAPGEN_ENV_FILE` is set, it will be used as the env file. Otherwise, `.env` in the
    current working directory is picked up when present.
    """

    env_file = os.getenv("MINDMAPGEN_ENV_FILE")
    if env_file:
        return Settings(_env_file=Path(env_file))

    default_env = Path.cwd() / ".env"
    if default_env.exists():
        return Settings(_env_file=default_env)

    return Settings()
