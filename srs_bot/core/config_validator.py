"""
Startup configuration validation and redacted summary logging.

Called early in application startup to fail fast on misconfiguration.
"""

import logging
import re
from typing import List

from pydantic import ValidationError

from .config import Settings
from .typed_config import SchedulerConfig

logger = logging.getLogger(__name__)

# Secrets that must be non-empty for the bot to function.
_REQUIRED_SECRETS = [
    ("telegram_bot_token", "TELEGRAM_BOT_TOKEN"),
]

# Minimal pattern: scheme://... or scheme:///...
_SQLALCHEMY_URL_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+\-.]*://")


def validate_config(settings: Settings) -> List[str]:
    """
    Validate application configuration and return a list of error strings.

    An empty list means the configuration is valid.
    """
    errors: List[str] = []

    # -- Required secrets --------------------------------------------------
    for attr, env_name in _REQUIRED_SECRETS:
        value = getattr(settings, attr, "")
        if not value or not value.strip():
            errors.append(f"{env_name} is required but missing or empty")

    # -- DATABASE_URL format -----------------------------------------------
    db_url = (settings.database_url or "").strip()
    if not db_url:
        errors.append("DATABASE_URL is required but missing or empty")
    elif not _SQLALCHEMY_URL_RE.match(db_url):
        errors.append(
            f"DATABASE_URL format is invalid (expected SQLAlchemy URL like "
            f"'sqlite+aiosqlite:///...' or 'postgresql+asyncpg://...'): "
            f"'{db_url}'"
        )

    # -- Scheduler parameters ----------------------------------------------
    try:
        SchedulerConfig.from_settings(settings)
    except (ValidationError, ValueError) as e:
        errors.append(f"SRS scheduler configuration is invalid: {e}")

    return errors


def _redact(secret: str) -> str:
    """Return first 4 characters followed by '***', or '<empty>' if blank."""
    if not secret:
        return "<empty>"
    return secret[:4] + "***"


def _db_type(database_url: str) -> str:
    """Extract the database backend name from a SQLAlchemy URL."""
    if not database_url:
        return "none"
    scheme = database_url.split("://")[0] if "://" in database_url else database_url
    # e.g. "sqlite+aiosqlite" -> "sqlite", "postgresql+asyncpg" -> "postgresql"
    return scheme.split("+")[0].lower()


def log_config_summary(settings: Settings, config: SchedulerConfig) -> None:
    """Log an INFO-level summary of loaded configuration with secrets redacted."""
    summary_lines = [
        f"environment={settings.environment}",
        f"database={_db_type(settings.database_url)}",
        f"bot_token={_redact(settings.telegram_bot_token)}",
        f"scan_every={config.scan_interval_seconds}s",
        f"batch={config.batch_size}",
        f"policy={config.adaptive_policy.value}",
        f"timeout={config.awaiting_grade_timeout_minutes}m/{config.timeout_policy.value}",
        f"max_interval={config.max_interval_days}d",
    ]
    logger.info("Config loaded: %s", " | ".join(summary_lines))
