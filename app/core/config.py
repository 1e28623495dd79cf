# app/core/config.py
# All application settings loaded from environment variables / .env file
# In production: values come from the hosting platform's secret store via env injection
# In development: loaded from .env file via python-dotenv

from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Single source of truth for all TutorLink configuration.
    pydantic-settings automatically reads from environment variables.
    Variable names are case-insensitive.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    app_env: str = "development"
    app_name: str = "TutorLink"
    app_version: str = "1.0.0"
    debug: bool = False
    auto_migrate_on_startup: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    allowed_origins: str = "http://localhost:3000,http://localhost:8000"
    app_url: str = "http://localhost:3000"

    # Database
    database_url: str

    # Redis (chat typing indicators)
    redis_url: str = "redis://localhost:6379/0"

    # Identity provider JWT (tokens are issued externally, verified here)
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    jwt_audience: str = "authenticated"

    # Shared secrets for cron / internal triggers
    allocator_secret: str = ""
    auto_complete_secret: str = ""
    cron_secret: str = ""

    # SendGrid
    sendgrid_api_key: str = ""
    email_from: str = "noreply@tutorlink.app"
    email_from_name: str = "TutorLink"

    # Scheduling
    campus_timezone: str = "UTC"             # Day model for tutor availability
    min_lead_minutes: int = 5                # Earliest bookable / proposable start
    min_duration_min: int = 30
    max_duration_min: int = 180
    default_duration_min: int = 60

    # Allocation
    allocation_batch_size: int = 25          # Queued sessions per allocate run
    allocation_candidate_limit: int = 50     # Tutors considered per session

    # Auto-completion + chat window
    auto_complete_grace_minutes: int = 15
    auto_complete_lazy_batch: int = 25
    chat_window_hours: int = 8

    # Reminders
    reminder_window_seconds: int = 60        # Cron cadence; window prevents misses
    reminder_email_lead_minutes: int = 60

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def cors_origins(self) -> List[str]:
        """Parse comma-separated ALLOWED_ORIGINS into a list."""
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    """
    Returns a cached Settings instance.
    Use as a FastAPI dependency: settings = Depends(get_settings)
    Or import directly:         from app.core.config import settings
    """
    return Settings()


# Module-level singleton -- import this directly in most places
settings = get_settings()
