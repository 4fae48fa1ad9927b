# studio_scheduler/schemas/scheduling.py
"""
Session planning schemas.

Drafts are explicit value objects owned by the caller: each planning call
receives the previous drafts (with their per-field "edited" flags) and
returns new ones. Nothing about drafts is kept inside the engine.
"""

from datetime import date, datetime, time
from enum import Enum
from typing import Any, List, Optional, Set

from pydantic import Field, field_validator

from ..utils.time_utils import string_to_time
from .base import OrmResponseModel, StrictModel, StrictRequestModel


class Frequency(str, Enum):
    RECURRING = "recurring"
    ONCE = "once"


class DraftField(str, Enum):
    """Fields of a draft that can be edited (and become sticky)."""

    START_TIME = "start_time"
    DURATION = "duration_minutes"
    INSTRUCTOR = "instructor_id"


def _parse_optional_time(value: Any) -> Any:
    if isinstance(value, str):
        return string_to_time(value) if value.strip() else None
    return value


class DraftSession(StrictModel):
    """Candidate occurrence awaiting confirmation."""

    session_date: Optional[date] = None
    start_time: Optional[time] = None
    duration_minutes: Optional[int] = None
    instructor_id: Optional[str] = None
    start_time_edited: bool = False
    duration_edited: bool = False
    instructor_edited: bool = False

    @field_validator("start_time", mode="before")
    @classmethod
    def parse_start_time(cls, value: Any) -> Any:
        return _parse_optional_time(value)

    @field_validator("instructor_id", mode="before")
    @classmethod
    def blank_instructor_is_default(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class RecurringPlanRequest(StrictRequestModel):
    """Defaults used to seed recurring drafts."""

    start_date: date
    weekdays: Set[int] = Field(default_factory=set)
    count: int
    start_time: time
    duration_minutes: Optional[int] = None
    instructor_id: Optional[str] = None

    @field_validator("weekdays")
    @classmethod
    def validate_weekdays(cls, value: Set[int]) -> Set[int]:
        invalid = sorted(day for day in value if not 0 <= day <= 6)
        if invalid:
            raise ValueError(f"weekdays must be between 0 (Sunday) and 6 (Saturday): {invalid}")
        return value

    @field_validator("start_time", mode="before")
    @classmethod
    def parse_start_time(cls, value: Any) -> Any:
        return _parse_optional_time(value)


class SinglePlanRequest(StrictRequestModel):
    """Defaults used to seed the single draft of a one-off session."""

    session_date: date
    start_time: time
    duration_minutes: Optional[int] = None
    instructor_id: Optional[str] = None

    @field_validator("start_time", mode="before")
    @classmethod
    def parse_start_time(cls, value: Any) -> Any:
        return _parse_optional_time(value)


class CoursePlanningContext(StrictModel):
    """Course fields the planner needs, normalized from the course row."""

    course_id: str
    session_count: int
    scheduled_sessions: int = 0
    session_duration_minutes: Optional[int] = None
    lead_instructor_id: Optional[str] = None
    default_room_id: Optional[str] = None
    room_capacity: Optional[int] = None

    @property
    def pending_sessions(self) -> int:
        return max(self.session_count - self.scheduled_sessions, 0)

    @classmethod
    def from_course(cls, course: Any) -> "CoursePlanningContext":
        room = getattr(course, "default_room", None)
        return cls(
            course_id=course.id,
            session_count=course.session_count or 0,
            scheduled_sessions=course.scheduled_sessions or 0,
            session_duration_minutes=course.session_duration_minutes,
            lead_instructor_id=course.lead_instructor_id,
            default_room_id=course.default_room_id,
            room_capacity=room.capacity if room is not None else None,
        )


class ScheduleRequest(StrictRequestModel):
    """Inbound scheduling request from the API layer."""

    course_id: str
    frequency: Frequency = Frequency.RECURRING
    occurrences: List[DraftSession] = Field(default_factory=list)


class ScheduledSessionResponse(OrmResponseModel):
    id: str
    course_id: str
    instructor_id: str
    room_id: str
    start_time: datetime
    end_time: datetime
    capacity: int


class ScheduleResult(StrictModel):
    """Outcome of a committed planning request."""

    created: int
    scheduled_total: int
    pending_remaining: int
    sessions: List[ScheduledSessionResponse] = Field(default_factory=list)
