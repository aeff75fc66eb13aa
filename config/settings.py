"""Configuration management using pydantic-settings."""
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Strategy manager
    cache_default_ttl_seconds: float = 300.0  # Used when no strategy matches
    cache_background_refresh_enabled: bool = True
    cache_seed_default_strategies: bool = True

    # Access-time smoothing (0.5 == (old + new) / 2)
    cache_access_time_smoothing: float = 0.5

    # Max seconds a caller waits on another caller's fetch (None = no limit)
    cache_coalesce_timeout_seconds: Optional[float] = None

    # Background maintenance
    cache_maintenance_interval_seconds: float = 300.0
    cache_metrics_max_idle_seconds: float = 3600.0

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
