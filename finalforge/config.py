"""Finalforge settings — env-driven.

Centralized config using pydantic-settings. Reads from a .env file and
FINALFORGE_* environment variables. Core components receive a settings
instance explicitly; only the CLI reads the module-level singleton.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FinalizeSettings(BaseSettings):
    """Settings with environment variable overrides.

    Examples
    --------
    Override via environment::

        export FINALFORGE_LOG_LEVEL=DEBUG
        export FINALFORGE_UPLOAD_WORKERS=8
        export FINALFORGE_BLOBSTORE_PATH=/srv/blobstore

    Or via .env file::

        FINALFORGE_LOCK_TIMEOUT_SECONDS=120
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="FINALFORGE_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging
    log_level: str = "INFO"

    # Repository layout
    releases_dirname: str = "releases"
    final_builds_dirname: str = ".final_builds"

    # Blobstore
    blobstore_path: Path | None = None  # overrides config/final.yml when set

    # Concurrency
    upload_workers: int = Field(default=4, ge=1)
    lock_timeout_seconds: float = Field(default=30.0, gt=0)


# Module-level singleton: `from finalforge.config import settings`
settings = FinalizeSettings()
