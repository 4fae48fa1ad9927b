"""
Timezone utilities for the studio scheduling engine.

Admin-entered dates and HH:MM times are wall-clock values in the studio
timezone; everything persisted is an absolute UTC timestamp.
"""

from datetime import date, datetime, time, timezone
from typing import Optional

import pytz

from .config import settings


def get_studio_timezone(tz_name: Optional[str] = None) -> pytz.BaseTzInfo:
    """Return the configured studio timezone as a pytz timezone object."""
    return pytz.timezone(tz_name or settings.studio_timezone)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """
    Normalize a datetime to aware UTC.

    Naive values are treated as UTC (SQLite drops tzinfo on read-back).
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def combine_local(day: date, at: time, tz_name: Optional[str] = None) -> datetime:
    """
    Combine a studio-local date and wall-clock time into an aware UTC datetime.

    Uses pytz ``localize`` so DST transitions resolve to the right offset.
    """
    tz = get_studio_timezone(tz_name)
    local = tz.localize(datetime.combine(day, at.replace(tzinfo=None)))
    return local.astimezone(timezone.utc)


def to_studio_local(dt: datetime, tz_name: Optional[str] = None) -> datetime:
    """Convert an absolute timestamp into studio wall-clock time."""
    return ensure_utc(dt).astimezone(get_studio_timezone(tz_name))
