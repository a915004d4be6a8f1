"""Shared utilities used across the scheduler."""

import re
from datetime import date, datetime, time, timezone
from typing import Optional

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_email(value: str) -> str:
    """Normalize an email address by trimming whitespace and lower-casing it.

    Examples:
        >>> normalize_email("  Jane.Doe@Example.COM ")
        'jane.doe@example.com'
    """
    return value.strip().lower()


def is_valid_email(value: Optional[str]) -> bool:
    """Loose shape check: something@domain.tld, no whitespace."""
    return bool(value) and bool(_EMAIL_RE.match(value.strip()))


def parse_date(value: str) -> date:
    """Parse a YYYY-MM-DD string into a date.

    Raises:
        ValueError: If the string is not an ISO calendar date.
    """
    return date.fromisoformat(value.strip())


def parse_time_of_day(value: str) -> time:
    """Parse an HH:MM (or HH:MM:SS) string into a time."""
    return time.fromisoformat(value.strip())


def day_of_week(value: date) -> int:
    """Day index with Sunday = 0 through Saturday = 6.

    Examples:
        >>> day_of_week(date(2025, 3, 18))  # a Tuesday
        2
    """
    return value.isoweekday() % 7


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime; naive values are taken to already be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
