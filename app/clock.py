"""
Business clock helpers.

All day boundaries (today, tomorrow, cutoff) are evaluated in the configured
business timezone, never in server-local time.
"""

import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from app.config import settings
from app.exceptions import ServiceValidationError

_HHMM_RE = re.compile(r"^\d{2}:\d{2}$")
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def business_tz() -> ZoneInfo:
    return ZoneInfo(settings.business_timezone)


def now_local(now: Optional[datetime] = None) -> datetime:
    """Current time in the business timezone (``now`` may be injected by callers)."""
    if now is None:
        now = utcnow()
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(business_tz())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def today(now: Optional[datetime] = None) -> date:
    return now_local(now).date()


def tomorrow(now: Optional[datetime] = None) -> date:
    return today(now) + timedelta(days=1)


def parse_cutoff(cutoff_time: str) -> time:
    """
    Parse an ``HH:mm`` cutoff string.

    Raises:
        ServiceValidationError: If the value is not in HH:mm form
    """
    if not isinstance(cutoff_time, str) or not _HHMM_RE.match(cutoff_time):
        raise ServiceValidationError(
            "Invalid cutoff format. Expected HH:mm", code="INVALID_CUTOFF"
        )
    hours, minutes = (int(p) for p in cutoff_time.split(":"))
    if hours > 23 or minutes > 59:
        raise ServiceValidationError(
            "Invalid cutoff format. Expected HH:mm", code="INVALID_CUTOFF"
        )
    return time(hours, minutes)


def is_before_cutoff(cutoff_time: str, now: Optional[datetime] = None) -> bool:
    """True while the business clock has not yet reached today's cutoff."""
    local = now_local(now)
    return local.time().replace(second=0, microsecond=0) < parse_cutoff(cutoff_time)


def has_reached_cutoff(cutoff_time: str, now: Optional[datetime] = None) -> bool:
    return not is_before_cutoff(cutoff_time, now)


def parse_day_date(value) -> date:
    """
    Parse a ``YYYY-MM-DD`` day string (dates pass through unchanged).

    Raises:
        ServiceValidationError: On malformed input
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not _DATE_RE.match(value):
        raise ServiceValidationError("Invalid date format, expected YYYY-MM-DD", code="INVALID_DATE")
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ServiceValidationError("Invalid date format, expected YYYY-MM-DD", code="INVALID_DATE")
