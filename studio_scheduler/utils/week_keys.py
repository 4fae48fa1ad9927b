"""ISO week identifiers (``YYYY-Www``) used to key override weeks."""

from __future__ import annotations

from datetime import date, timedelta
import re
from typing import Optional

_WEEK_KEY_RE = re.compile(r"^([0-9]{4})-W([0-9]{2})$")


def week_start(day: date) -> date:
    """Monday of the ISO week containing ``day``."""
    return day - timedelta(days=day.weekday())


def week_key_from_date(day: date) -> str:
    iso_year, iso_week, _ = day.isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


def week_key_from_start_date(week_start_date: date) -> str:
    """Key for the ISO week that ``week_start_date`` falls in."""
    return week_key_from_date(week_start_date)


def week_start_date_from_key(week_key: str) -> Optional[date]:
    """
    Monday of the week identified by ``week_key``.

    Returns None for malformed keys or week numbers the ISO year does not have.
    """
    match = _WEEK_KEY_RE.match(week_key.strip())
    if not match:
        return None
    year, week = int(match.group(1)), int(match.group(2))
    if week <= 0:
        return None
    try:
        return date.fromisocalendar(year, week, 1)
    except ValueError:
        return None
