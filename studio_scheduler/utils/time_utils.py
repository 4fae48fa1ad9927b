from __future__ import annotations

from datetime import date, datetime, time
from typing import Union

MINUTES_PER_DAY = 24 * 60


def time_to_minutes(t: time, *, is_end_time: bool = False) -> int:
    """
    Convert time to minutes since midnight.

    Args:
        t: Time object.
        is_end_time: If True, treat time(0, 0) as 1440 (end of day).

    Returns:
        Minutes since midnight (0-1440).
    """
    minutes = t.hour * 60 + t.minute
    if is_end_time and minutes == 0:
        return MINUTES_PER_DAY
    return minutes


def minutes_to_time_str(minutes: int) -> str:
    """
    Convert minutes since midnight to HH:MM.

    1440 is rendered as "24:00".
    """
    if not 0 <= minutes <= MINUTES_PER_DAY:
        raise ValueError(f"minutes out of range: {minutes}")
    if minutes == MINUTES_PER_DAY:
        return "24:00"
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def string_to_time(time_str: str) -> time:
    """Parse 'HH:MM' or 'HH:MM:SS'; '24:00' maps to midnight."""
    normalized = time_str.strip()
    if len(normalized) == 5:
        normalized += ":00"
    if normalized == "24:00:00":
        return time(0, 0)
    return datetime.strptime(normalized, "%H:%M:%S").time()


def sunday_first_weekday(day: Union[date, datetime]) -> int:
    """Weekday ordinal with Sunday=0 ... Saturday=6."""
    return (day.weekday() + 1) % 7


def ranges_overlap(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    """Half-open overlap test: [a) and [b) share at least one minute."""
    return start_a < end_b and end_a > start_b
