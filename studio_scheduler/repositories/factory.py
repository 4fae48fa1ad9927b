# studio_scheduler/repositories/factory.py
"""
Repository factory.

Central place where services obtain repositories, so that tests can swap
implementations by patching one spot.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from .base_repository import BaseRepository

if TYPE_CHECKING:
    from .attendance_token_repository import AttendanceTokenRepository
    from .availability_repository import AvailabilityRepository
    from .booking_repository import BookingRepository
    from .course_repository import CourseRepository
    from .session_repository import ScheduledSessionRepository
    from .waitlist_repository import WaitlistRepository


class RepositoryFactory:
    """Creates repository instances bound to a session."""

    @staticmethod
    def create_base_repository(db: Session, model) -> BaseRepository:
        """Generic repository for models without a dedicated one (rooms, instructors)."""
        return BaseRepository(db, model)

    @staticmethod
    def create_availability_repository(db: Session) -> "AvailabilityRepository":
        from .availability_repository import AvailabilityRepository

        return AvailabilityRepository(db)

    @staticmethod
    def create_course_repository(db: Session) -> "CourseRepository":
        from .course_repository import CourseRepository

        return CourseRepository(db)

    @staticmethod
    def create_session_repository(db: Session) -> "ScheduledSessionRepository":
        from .session_repository import ScheduledSessionRepository

        return ScheduledSessionRepository(db)

    @staticmethod
    def create_booking_repository(db: Session) -> "BookingRepository":
        from .booking_repository import BookingRepository

        return BookingRepository(db)

    @staticmethod
    def create_attendance_token_repository(db: Session) -> "AttendanceTokenRepository":
        from .attendance_token_repository import AttendanceTokenRepository

        return AttendanceTokenRepository(db)

    @staticmethod
    def create_waitlist_repository(db: Session) -> "WaitlistRepository":
        from .waitlist_repository import WaitlistRepository

        return WaitlistRepository(db)
