"""
Database models for the studio scheduling engine.

The models are organized by functionality:
- Resources: rooms (with one-off date blocks) and instructors
- Courses and their concrete scheduled sessions
- Bookings, the session waitlist and attendance tokens
- Availability patterns, override weeks and recurring blocks
"""

from .attendance_token import AttendanceToken, AttendanceTokenKind
from .availability import (
    OverrideWeek,
    OverrideWeekSlot,
    OwnerType,
    RecurringBlock,
    WeeklyAvailabilitySlot,
)
from .booking import ACTIVE_BOOKING_STATUSES, Booking, BookingStatus
from .class_session import ScheduledSession
from .course import Course
from .instructor import Instructor
from .room import Room, RoomDateBlock
from .waitlist import WaitlistEntry, WaitlistStatus

__all__ = [
    "ACTIVE_BOOKING_STATUSES",
    "AttendanceToken",
    "AttendanceTokenKind",
    "Booking",
    "BookingStatus",
    "Course",
    "Instructor",
    "OverrideWeek",
    "OverrideWeekSlot",
    "OwnerType",
    "RecurringBlock",
    "Room",
    "RoomDateBlock",
    "ScheduledSession",
    "WaitlistEntry",
    "WaitlistStatus",
    "WeeklyAvailabilitySlot",
]
