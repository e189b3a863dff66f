"""Runtime settings for talkbridge."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Timing and logging knobs shared by every talker."""

    model_config = SettingsConfigDict(
        env_prefix="TALKBRIDGE_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Waits
    standard_timeout_seconds: float = Field(default=1.5, gt=0, description="Baseline timeout for remote actions")
    text_timeout_unit_chars: int = Field(default=500, gt=0, description="Characters per extra millisecond of text timeout")
    poll_interval_seconds: float = Field(default=0.005, ge=0, description="Sleep between polls of a pending action")
    save_timeout_seconds: float = Field(default=120.0, gt=0, description="Upper bound for one audio export")
    sidecar_wait_seconds: float = Field(default=0.25, ge=0, description="How long to wait for a sidecar text file")

    # Background updates
    update_interval_seconds: float = Field(default=0.01, gt=0, description="Delay between talker state updates")
    process_list_update_interval_seconds: float = Field(
        default=0.1, gt=0, description="Lifetime of the cached process list"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Log level")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get process-wide settings, loaded once from the environment."""
    return Settings()
