"""
credverse configuration.

Pydantic-validated settings, overridable by environment variables with the
``CREDVERSE_`` prefix (e.g. ``CREDVERSE_REGISTRY_TIMEOUT_S=5``).

Settings only supply defaults. Every component also accepts explicit
arguments, so tests never depend on the environment.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CredverseSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CREDVERSE_",
        extra="ignore",
    )

    # Verification pointer (QR target)
    verify_base_url: str = "https://credverse.in"

    # Registry calls
    registry_timeout_s: float = Field(default=10.0, gt=0)
    registry_max_attempts: int = Field(default=4, ge=1)
    registry_backoff_base_s: float = Field(default=0.25, ge=0)
    registry_backoff_max_s: float = Field(default=4.0, ge=0)
    registry_db_path: str = ":memory:"

    # Bulk issuance / verification fan-out
    bulk_concurrency: int = Field(default=8, ge=1)

    # Content store ("" keeps blobs in memory)
    content_store_path: str = ""

    # Identity resolution
    resolver_timeout_s: float = Field(default=5.0, gt=0)

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"  # "console" | "json"


@lru_cache(maxsize=1)
def get_settings() -> CredverseSettings:
    """Process-wide settings, loaded once from the environment."""
    return CredverseSettings()
