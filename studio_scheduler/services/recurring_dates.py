# studio_scheduler/services/recurring_dates.py
"""
Recurring date expansion.

Pure function, no I/O: the same (start_date, weekdays, count) always yields
the same dates, so callers can re-render or re-submit drafts safely.
"""

from datetime import date, timedelta
import logging
from typing import Iterable, List, Optional

from ..core.config import settings
from ..utils.time_utils import sunday_first_weekday

logger = logging.getLogger(__name__)


def compute_recurring_dates(
    start_date: date,
    weekdays: Iterable[int],
    count: int,
    *,
    max_scan_days: Optional[int] = None,
) -> List[date]:
    """
    Expand a weekly selection into concrete dates.

    Walks forward one day at a time from ``start_date`` (inclusive) and keeps
    every day whose Sunday-first weekday (0=Sunday ... 6=Saturday) is
    selected, until ``count`` dates are found or ``max_scan_days`` days have
    been scanned.

    Args:
        start_date: First candidate day
        weekdays: Selected weekdays; values outside 0-6 never match
        count: Number of dates wanted
        max_scan_days: Safety bound, defaults to settings.recurring_dates_max_scan_days

    Returns:
        Ordered list of at most ``count`` dates; empty when no weekday is
        selected or ``count`` is not positive.
    """
    selected = frozenset(weekdays)
    if not selected or count <= 0:
        return []

    limit = max_scan_days if max_scan_days is not None else settings.recurring_dates_max_scan_days
    dates: List[date] = []
    cursor = start_date
    scanned = 0

    while len(dates) < count and scanned < limit:
        if sunday_first_weekday(cursor) in selected:
            dates.append(cursor)
        cursor += timedelta(days=1)
        scanned += 1

    if len(dates) < count:
        logger.debug(
            "Recurring date scan stopped after %s days with %s of %s dates",
            scanned,
            len(dates),
            count,
        )
    return dates
