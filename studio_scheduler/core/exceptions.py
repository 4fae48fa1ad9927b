# studio_scheduler/core/exceptions.py
"""
Domain-specific exceptions for the studio scheduling engine.

Everything raised here is an expected condition the caller can act on.
Each one carries a stable ``code`` plus details such as a draft index,
a session id or a token reason, and maps to an HTTP status through
``to_http_exception``.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Root of the scheduling error hierarchy."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        """Convert to the HTTPException the API layer returns."""
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when the request shape is invalid; caller fixes input and retries."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Unknown course, session, booking or availability entry."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """The request collides with rows that already exist."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Well-formed request refused by a scheduling rule."""

    status_code = HTTP_422_UNPROCESSABLE


class ServiceException(DomainException):
    """Unexpected failure below the domain layer, reported as a 500."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Session planning


class RoomNotAssignedException(BusinessRuleException):
    """Raised when a course has no usable default room."""

    def __init__(self, course_id: str, reason: str = "missing_room"):
        super().__init__(
            message="Assign a default room to the course before scheduling sessions",
            code="ROOM_NOT_ASSIGNED",
            details={"course_id": course_id, "reason": reason},
        )


class CourseFullyScheduledException(BusinessRuleException):
    """Raised when a course has no pending sessions left."""

    def __init__(self, course_id: str):
        super().__init__(
            message="This course already has all of its sessions scheduled",
            code="COURSE_FULLY_SCHEDULED",
            details={"course_id": course_id},
        )


class IncompleteDraftException(ValidationException):
    """Raised when a draft session is missing its date or start time."""

    def __init__(self, index: int):
        super().__init__(
            message=f"Complete the date and start time for session {index + 1}",
            code="INCOMPLETE_DRAFT",
            details={"index": index},
        )


class InvalidDurationException(ValidationException):
    """Raised when a draft session has a non-positive duration."""

    def __init__(self, index: int, duration_minutes: Optional[int]):
        super().__init__(
            message=f"Define a valid duration for session {index + 1}",
            code="INVALID_DURATION",
            details={"index": index, "duration_minutes": duration_minutes},
        )


class MissingInstructorException(BusinessRuleException):
    """Raised when neither the draft nor the course provides an instructor."""

    def __init__(self, index: int):
        super().__init__(
            message=f"Assign an instructor to session {index + 1}",
            code="MISSING_INSTRUCTOR",
            details={"index": index},
        )


class QuotaExceededException(BusinessRuleException):
    """Raised when more drafts are submitted than the course has pending."""

    def __init__(self, requested: int, pending: int):
        super().__init__(
            message=f"Only {pending} pending sessions remain for this course",
            code="QUOTA_EXCEEDED",
            details={"requested": requested, "pending": pending},
        )


class CourseLockedException(BusinessRuleException):
    """Raised when editing a course that already has scheduled sessions."""

    def __init__(self, course_id: str, scheduled_sessions: int):
        super().__init__(
            message="A course cannot be edited once it has scheduled sessions",
            code="COURSE_LOCKED",
            details={"course_id": course_id, "scheduled_sessions": scheduled_sessions},
        )


class BlackoutConflictException(ConflictException):
    """Raised when a planned session falls inside a room or instructor blackout."""

    def __init__(self, reason: str, index: Optional[int] = None, **extra: Any):
        details: Dict[str, Any] = {"reason": reason, **extra}
        if index is not None:
            details["index"] = index
        label = f" for session {index + 1}" if index is not None else ""
        super().__init__(
            message=f"The selected slot is not available{label} ({reason})",
            code="BLACKOUT_CONFLICT",
            details=details,
        )


# Booking and attendance


class SessionFullException(ConflictException):
    """Raised when a session has no seats left."""

    def __init__(self, session_id: str, capacity: int):
        super().__init__(
            message="This session is fully booked",
            code="SESSION_FULL",
            details={"session_id": session_id, "capacity": capacity},
        )


class AttendanceTokenException(BusinessRuleException):
    """Raised when an attendance token cannot be used for check-in."""

    _MESSAGES = {
        "not_found": "QR code not found",
        "expired": "The QR code has expired",
        "not_allowed": "The booking cannot be checked in in its current state",
        "no_booking": "No active booking for this session",
    }

    def __init__(self, reason: str, **extra: Any):
        self.reason = reason
        super().__init__(
            message=self._MESSAGES.get(reason, "Invalid QR code"),
            code=f"ATTENDANCE_TOKEN_{reason.upper()}",
            details={"reason": reason, **extra},
        )

    def to_http_exception(self) -> HTTPException:
        status_code = {
            "not_found": status.HTTP_404_NOT_FOUND,
            "expired": status.HTTP_410_GONE,
            "not_allowed": status.HTTP_409_CONFLICT,
        }.get(self.reason, self.status_code)
        return HTTPException(
            status_code=status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class RepositoryException(Exception):
    """A query or flush failed in the data access layer."""
