# studio_scheduler/schemas/__init__.py
"""Pydantic schemas exchanged between repositories, services and callers."""

from .availability import (
    AvailabilitySnapshot,
    DateBlockData,
    OverrideWeekData,
    RecurringBlockData,
    TimeRange,
    WeeklyPattern,
)
from .blackout import BlackoutCandidate, BlackoutReason, BlackoutResult
from .booking import (
    AttendanceTokenResponse,
    BookingRequest,
    BookingResponse,
    BookingResult,
    CancellationResult,
    CheckInResult,
    WaitlistEntryResponse,
    WaitlistJoinResult,
    WaitlistLeaveResult,
)
from .scheduling import (
    CoursePlanningContext,
    DraftField,
    DraftSession,
    Frequency,
    RecurringPlanRequest,
    ScheduledSessionResponse,
    ScheduleRequest,
    ScheduleResult,
    SinglePlanRequest,
)

__all__ = [
    "AttendanceTokenResponse",
    "AvailabilitySnapshot",
    "BlackoutCandidate",
    "BlackoutReason",
    "BlackoutResult",
    "BookingRequest",
    "BookingResponse",
    "BookingResult",
    "CancellationResult",
    "CheckInResult",
    "CoursePlanningContext",
    "DateBlockData",
    "DraftField",
    "DraftSession",
    "Frequency",
    "OverrideWeekData",
    "RecurringBlockData",
    "RecurringPlanRequest",
    "ScheduleRequest",
    "ScheduleResult",
    "ScheduledSessionResponse",
    "SinglePlanRequest",
    "TimeRange",
    "WaitlistEntryResponse",
    "WaitlistJoinResult",
    "WaitlistLeaveResult",
    "WeeklyPattern",
]
