# studio_scheduler/repositories/__init__.py
"""
Repository layer for the studio scheduling engine.

Key Components:
- BaseRepository: keyed reads, inserts, row locking and query helpers
- RepositoryFactory: creates repository instances for services
- AvailabilityRepository: weekly patterns, override weeks, blocks
- CourseRepository: course rows and the scheduled-session counter
- ScheduledSessionRepository: concrete sessions
- BookingRepository: bookings and occupancy
- AttendanceTokenRepository: live attendance tokens
- WaitlistRepository: per-session waitlist queue

Usage:
    from studio_scheduler.repositories import RepositoryFactory

    repository = RepositoryFactory.create_booking_repository(db)
    occupied = repository.count_active(session_id)
"""

from .attendance_token_repository import AttendanceTokenRepository
from .availability_repository import AvailabilityRepository
from .base_repository import BaseRepository
from .booking_repository import BookingRepository
from .course_repository import CourseRepository
from .factory import RepositoryFactory
from .session_repository import ScheduledSessionRepository
from .waitlist_repository import WaitlistRepository

__all__ = [
    "AttendanceTokenRepository",
    "AvailabilityRepository",
    "BaseRepository",
    "BookingRepository",
    "CourseRepository",
    "RepositoryFactory",
    "ScheduledSessionRepository",
    "WaitlistRepository",
]
