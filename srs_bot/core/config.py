"""
Application configuration using Pydantic Settings.

Centralizes all configuration with environment variable support.
Components never read the environment themselves: the scheduler-facing
values are packed into a SchedulerConfig (see typed_config.py) at startup.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Telegram
    telegram_bot_token: str = ""

    # Database
    database_url: str = "sqlite+aiosqlite:///./data/srs_bot.db"

    # Environment
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"
    log_to_file: bool = True

    # Scheduler cadence
    srs_scan_interval_seconds: int = 60
    srs_batch_size: int = 5

    # Review timing
    srs_initial_review_minutes: int = 10
    srs_awaiting_grade_timeout_minutes: int = 720
    srs_max_interval_days: int = 365
    srs_delivery_retry_minutes: int = 60
    srs_delivery_claim_ttl_seconds: int = 300

    # Interval policy
    srs_default_reminder_mode: str = "adaptive"
    srs_adaptive_policy: str = "ease"
    srs_interval_ladder: str = "1,3,7,14,30"
    srs_timeout_policy: str = "revert"

    # Reminder text sent as a reply to the base message
    srs_reminder_text: str = "🔔 Time to review this card"

    # Store retry policy
    srs_db_retry_attempts: int = 3
    srs_db_retry_base_delay: float = 1.5

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra env vars


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def is_production() -> bool:
    """True when running with ENVIRONMENT=production."""
    return get_settings().environment.lower() == "production"


def is_testing() -> bool:
    """True when running with ENVIRONMENT=test."""
    return get_settings().environment.lower() == "test"
