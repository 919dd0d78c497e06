"""
Datetime utilities for consistent calendar handling across the application.

Reservation dates are plain calendar dates in the institution's local time.
They are exchanged as YYYY-MM-DD strings and must never pass through a
timezone conversion, which would shift them by a day around local midnight.
"""

import logging
import re
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from core.config import INSTITUTION_UTC_OFFSET_HOURS

logger = logging.getLogger(__name__)

# Institution timezone constant (fixed offset, default UTC-3)
INSTITUTION_TZ = timezone(timedelta(hours=INSTITUTION_UTC_OFFSET_HOURS))

_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

MONDAY = 0
SATURDAY = 5
SUNDAY = 6


def institution_now() -> datetime:
    """
    Get current institution-local datetime.

    Returns:
        Current datetime with the institution timezone attached
    """
    return datetime.now(INSTITUTION_TZ)


def institution_today() -> date:
    """Get today's calendar date in institution-local time."""
    return institution_now().date()


def ensure_institution_tz(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure a datetime is timezone-aware in the institution timezone.

    Naive datetimes (as returned by SQLite) are assumed to already be
    institution-local.
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=INSTITUTION_TZ)
    return dt.astimezone(INSTITUTION_TZ)


def local_date_of(dt: datetime) -> date:
    """Calendar date a timestamp falls on in institution-local time."""
    local = ensure_institution_tz(dt)
    assert local is not None
    return local.date()


def parse_date_string(date_str: str) -> date:
    """
    Parse a YYYY-MM-DD string into a calendar date.

    The string is split into its components directly; no timezone is
    involved at any point.

    Raises:
        ValueError: If the string is not a valid YYYY-MM-DD calendar date
    """
    if not isinstance(date_str, str) or not _DATE_PATTERN.match(date_str.strip()):
        raise ValueError(f"Invalid date format: {date_str!r}. Expected YYYY-MM-DD")
    try:
        return date.fromisoformat(date_str.strip())
    except ValueError:
        raise ValueError(f"Invalid calendar date: {date_str!r}")


def next_action_date(today: date) -> date:
    """
    First date users can act on.

    On Saturday and Sunday this is the following Monday; on weekdays it is
    today.
    """
    weekday = today.weekday()
    if weekday == SATURDAY:
        return today + timedelta(days=2)
    if weekday == SUNDAY:
        return today + timedelta(days=1)
    return today


def is_weekend(value: date) -> bool:
    return value.weekday() in (SATURDAY, SUNDAY)
