"""Configuration management using pydantic-settings."""
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Backend API configuration
    api_base_url: str = "http://localhost:5000/api"
    api_token: Optional[str] = None
    api_timeout_seconds: float = 30.0

    # Cache settings
    cache_enabled: bool = True
    cache_default_duration_seconds: float = 300
    cache_stale_time_seconds: float = 0

    # Sweeper
    cache_auto_cleanup: bool = True
    cache_cleanup_interval_seconds: float = 300

    # Per-resource durations
    cache_wifi_duration_seconds: float = 60
    cache_locations_duration_seconds: float = 600
    cache_users_duration_seconds: float = 300

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
