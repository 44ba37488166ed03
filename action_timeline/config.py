"""Timeline configuration via pydantic-settings."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

PRODUCTION_ENVS = ("production", "prod", "staging")


class Settings(BaseSettings):
    """Settings loaded from environment variables.

    All variables are prefixed with ``ACTIONLINE_`` (e.g. ``ACTIONLINE_LOG_LEVEL``).
    """

    model_config = SettingsConfigDict(env_prefix="ACTIONLINE_")

    # Runtime environment; production-like values switch logs to JSON
    env: str = "development"
    log_level: str = "INFO"

    # Tween engine defaults (ms)
    tween_frame_ms: float = 16.0
    default_duration_ms: float = 200.0
    default_easing: str = "linear"

    # Sequence definition storage
    sequence_dir: str = "sequences"

    @property
    def is_production(self) -> bool:
        return self.env.lower() in PRODUCTION_ENVS


@lru_cache
def get_settings() -> Settings:
    return Settings()
