"""Application configuration management."""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        if self.debug and self.log_level.upper() not in ("TRACE", "VERBOSE"):
            self.log_level = "DEBUG"

    # Database
    database_url: str = "sqlite:///./toggl_reports.db"

    # Security
    encryption_key: str

    # CORS
    cors_origins: str = "http://localhost:5173"

    # Application
    debug: bool = False
    log_level: str = "INFO"
    api_v1_str: str = "/api/v1"

    # Toggl API
    toggl_api_base_url: str = "https://api.track.toggl.com/api/v9"
    toggl_timeout_seconds: float = 30.0

    # Cache-through TTLs
    api_cache_ttl_minutes: int = 60
    entries_cache_ttl_minutes: int = 5

    # Report refresh
    refresh_debounce_seconds: int = 60
    default_refresh_interval_hours: int = 2
    scheduler_enabled: bool = True
    scheduler_poll_minutes: int = 5

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]


# Global settings instance
settings = Settings()
