"""
Centralized configuration with environment variable overrides.

Time zone, datastore location, provider timeouts and fan-out limits are
configurable here. Nothing is hardcoded in scheduling or storage logic.
"""

import logging
import os
from dataclasses import dataclass, field
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class BusinessConfig:
    """Where the weekly slot template is anchored in time."""

    timezone: str = os.getenv("BUSINESS_TIMEZONE", "UTC")

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


@dataclass(frozen=True)
class DatabaseConfig:
    """Datastore connection settings."""

    url: str = os.getenv("DATABASE_URL", "sqlite:///scheduler.db")
    echo: bool = os.getenv("DATABASE_ECHO", "false").lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class CalendarConfig:
    """External calendar provider limits and endpoints."""

    api_url: str = os.getenv(
        "GOOGLE_CALENDAR_API_URL", "https://www.googleapis.com/calendar/v3"
    )
    availability_concurrency: int = _safe_int("AVAILABILITY_CONCURRENCY", "10")
    freebusy_timeout_sec: float = _safe_float("FREEBUSY_TIMEOUT_SEC", "5.0")
    event_create_timeout_sec: float = _safe_float("EVENT_CREATE_TIMEOUT_SEC", "10.0")


@dataclass(frozen=True)
class SessionConfig:
    """OAuth session-token store settings."""

    ttl_sec: int = _safe_int("SESSION_TTL_SEC", "3600")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    business: BusinessConfig = field(default_factory=BusinessConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    calendar: CalendarConfig = field(default_factory=CalendarConfig)
    sessions: SessionConfig = field(default_factory=SessionConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    service_name: str = os.getenv("SERVICE_NAME", "team-scheduler")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    try:
        ZoneInfo(config.business.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(
            f"BUSINESS_TIMEZONE must be a valid IANA zone, got {config.business.timezone!r}"
        ) from None
    if not config.database.url:
        raise ValueError("DATABASE_URL must not be empty")
    if config.calendar.availability_concurrency < 1:
        raise ValueError(
            "AVAILABILITY_CONCURRENCY must be >= 1, "
            f"got {config.calendar.availability_concurrency}"
        )
    if config.calendar.freebusy_timeout_sec <= 0:
        raise ValueError(
            f"FREEBUSY_TIMEOUT_SEC must be > 0, got {config.calendar.freebusy_timeout_sec}"
        )
    if config.calendar.event_create_timeout_sec <= 0:
        raise ValueError(
            "EVENT_CREATE_TIMEOUT_SEC must be > 0, "
            f"got {config.calendar.event_create_timeout_sec}"
        )
    if config.sessions.ttl_sec < 1:
        raise ValueError(f"SESSION_TTL_SEC must be >= 1, got {config.sessions.ttl_sec}")


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info(
        "Configuration loaded for '%s' (tz=%s)",
        config.service_name,
        config.business.timezone,
    )
    return config


# Singleton instance
settings = load_config()
