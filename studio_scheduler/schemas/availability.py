# studio_scheduler/schemas/availability.py
"""
Availability value objects.

Persistence rows are normalized into these typed entities at the repository
boundary; the blackout resolver and the admin service only ever see them.

Weekdays are Sunday-first ordinals (0=Sunday ... 6=Saturday). Times are
studio wall-clock values; an end of "24:00" means end of day.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import Field, field_validator, model_validator

from ..core.timezone_utils import ensure_utc
from ..utils.time_utils import ranges_overlap, string_to_time, time_to_minutes
from ..utils.week_keys import week_key_from_start_date, week_start, week_start_date_from_key
from .base import StrictModel

WEEKDAYS: Tuple[int, ...] = tuple(range(7))


def _coerce_time(value: Any) -> Any:
    if isinstance(value, str):
        return string_to_time(value)
    return value


def _clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


class TimeRange(StrictModel):
    """Contiguous wall-clock range within one day."""

    start: time
    end: time

    @field_validator("start", "end", mode="before")
    @classmethod
    def parse_times(cls, value: Any) -> Any:
        return _coerce_time(value)

    @property
    def start_minutes(self) -> int:
        return time_to_minutes(self.start)

    @property
    def end_minutes(self) -> int:
        return time_to_minutes(self.end, is_end_time=True)

    @property
    def is_valid(self) -> bool:
        return self.start_minutes < self.end_minutes

    def contains(self, start_minutes: int, end_minutes: int) -> bool:
        """True when [start, end) lies entirely inside this range."""
        return self.start_minutes <= start_minutes and end_minutes <= self.end_minutes

    def overlaps(self, start_minutes: int, end_minutes: int) -> bool:
        return ranges_overlap(start_minutes, end_minutes, self.start_minutes, self.end_minutes)


class WeeklyPattern(StrictModel):
    """
    Per-weekday list of time ranges.

    Always carries all seven weekdays; a weekday with no ranges is fully
    unavailable. Ranges are kept sorted by start time.
    """

    days: Dict[int, List[TimeRange]] = Field(default_factory=dict)

    @field_validator("days")
    @classmethod
    def normalize_days(cls, value: Dict[int, List[TimeRange]]) -> Dict[int, List[TimeRange]]:
        unknown = [key for key in value if key not in WEEKDAYS]
        if unknown:
            raise ValueError(f"weekday must be between 0 and 6, got {unknown}")
        return {
            weekday: sorted(value.get(weekday, []), key=lambda r: (r.start_minutes, r.end_minutes))
            for weekday in WEEKDAYS
        }

    @classmethod
    def empty(cls) -> "WeeklyPattern":
        return cls(days={})

    @classmethod
    def from_rows(cls, rows: Iterable[Any]) -> "WeeklyPattern":
        """Build from any rows exposing ``weekday``, ``start_time`` and ``end_time``."""
        days: Dict[int, List[TimeRange]] = {}
        for row in rows:
            days.setdefault(int(row.weekday), []).append(
                TimeRange(start=row.start_time, end=row.end_time)
            )
        return cls(days=days)

    def ranges_for(self, weekday: int) -> List[TimeRange]:
        return self.days.get(weekday, [])

    def to_rows(self) -> List[Tuple[int, time, time]]:
        """(weekday, start, end) tuples to persist; empty or inverted ranges are dropped."""
        rows: List[Tuple[int, time, time]] = []
        for weekday in WEEKDAYS:
            for time_range in self.ranges_for(weekday):
                if not time_range.is_valid:
                    continue
                rows.append((weekday, time_range.start, time_range.end))
        return rows

    @property
    def is_empty(self) -> bool:
        return not any(self.days.get(weekday) for weekday in WEEKDAYS)


class OverrideWeekData(StrictModel):
    """
    Dated week that replaces the owner's default pattern.

    Either ``week_key`` or ``week_start_date`` may be supplied; the other is
    derived. The start date is snapped to the Monday of its ISO week.
    """

    id: Optional[str] = None
    week_key: Optional[str] = None
    week_start_date: Optional[date] = None
    label: Optional[str] = None
    notes: Optional[str] = None
    days: WeeklyPattern = Field(default_factory=WeeklyPattern.empty)

    @field_validator("label", "notes")
    @classmethod
    def strip_text(cls, value: Optional[str]) -> Optional[str]:
        return _clean_text(value)

    @model_validator(mode="after")
    def resolve_week(self) -> "OverrideWeekData":
        start = self.week_start_date
        if start is None and self.week_key:
            start = week_start_date_from_key(self.week_key)
        if start is None:
            raise ValueError("override week requires a valid week_key or week_start_date")
        start = week_start(start)
        # Assign through __dict__ to avoid re-entering validate_assignment.
        self.__dict__["week_start_date"] = start
        self.__dict__["week_key"] = week_key_from_start_date(start)
        return self

    @property
    def week_end_date(self) -> date:
        assert self.week_start_date is not None
        return self.week_start_date + timedelta(days=6)

    def covers(self, day: date) -> bool:
        assert self.week_start_date is not None
        return self.week_start_date <= day <= self.week_end_date


class RecurringBlockData(StrictModel):
    """Weekly exclusion window for a room or an instructor."""

    id: Optional[str] = None
    weekday: int = Field(ge=0, le=6)
    start_time: time
    end_time: time
    reason: Optional[str] = None
    note: Optional[str] = None

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def parse_times(cls, value: Any) -> Any:
        return _coerce_time(value)

    @field_validator("reason", "note")
    @classmethod
    def strip_text(cls, value: Optional[str]) -> Optional[str]:
        return _clean_text(value)

    @model_validator(mode="after")
    def validate_order(self) -> "RecurringBlockData":
        if self.as_range().is_valid:
            return self
        raise ValueError("End time must be after start time")

    def as_range(self) -> TimeRange:
        return TimeRange(start=self.start_time, end=self.end_time)


class DateBlockData(StrictModel):
    """One-off exclusion window on absolute timestamps."""

    id: Optional[str] = None
    starts_at: datetime
    ends_at: datetime
    reason: Optional[str] = None
    note: Optional[str] = None

    @field_validator("reason", "note")
    @classmethod
    def strip_text(cls, value: Optional[str]) -> Optional[str]:
        return _clean_text(value)

    @field_validator("starts_at", "ends_at")
    @classmethod
    def normalize_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @model_validator(mode="after")
    def validate_order(self) -> "DateBlockData":
        if self.starts_at >= self.ends_at:
            raise ValueError("The block must end after it starts")
        return self

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return ensure_utc(start) < self.ends_at and ensure_utc(end) > self.starts_at


class AvailabilitySnapshot(StrictModel):
    """
    Everything the blackout resolver needs for one (room, instructor) pair.

    ``instructor_weekly`` is None when the instructor never declared a
    default weekly pattern.
    """

    room_id: str
    instructor_id: str
    room_date_blocks: List[DateBlockData] = Field(default_factory=list)
    room_recurring_blocks: List[RecurringBlockData] = Field(default_factory=list)
    instructor_recurring_blocks: List[RecurringBlockData] = Field(default_factory=list)
    instructor_weekly: Optional[WeeklyPattern] = None
    instructor_overrides: List[OverrideWeekData] = Field(default_factory=list)

    def override_for(self, day: date) -> Optional[OverrideWeekData]:
        for override in self.instructor_overrides:
            if override.covers(day):
                return override
        return None
