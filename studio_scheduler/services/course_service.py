# studio_scheduler/services/course_service.py
"""Course configuration, frozen once sessions exist."""

import logging
from typing import Any, Dict

from sqlalchemy.orm import Session

from ..core.exceptions import CourseLockedException, NotFoundException, ValidationException
from ..models.course import Course
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)

EDITABLE_COURSE_FIELDS = frozenset(
    {
        "name",
        "session_count",
        "session_duration_minutes",
        "lead_instructor_id",
        "default_room_id",
    }
)


class CourseService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.course_repository = RepositoryFactory.create_course_repository(db)

    @BaseService.measure_operation("create_course")
    def create_course(self, **fields: Any) -> Course:
        self._validate_fields(fields)
        with self.transaction():
            return self.course_repository.create(**fields)

    @BaseService.measure_operation("update_course")
    def update_course(self, course_id: str, **changes: Any) -> Course:
        """
        Edit a course's configuration.

        Raises:
            CourseLockedException: the course already has scheduled sessions
        """
        self._validate_fields(changes)
        self.log_operation("update_course", course_id=course_id, fields=sorted(changes))
        with self.transaction():
            course = self.course_repository.get_for_planning(course_id)
            if course is None:
                raise NotFoundException(f"Course {course_id} not found", code="COURSE_NOT_FOUND")
            if (course.scheduled_sessions or 0) > 0:
                raise CourseLockedException(course_id, course.scheduled_sessions)
            for key, value in changes.items():
                setattr(course, key, value)
            self.db.flush()
            return course

    def _validate_fields(self, fields: Dict[str, Any]) -> None:
        unknown = sorted(set(fields) - EDITABLE_COURSE_FIELDS)
        if unknown:
            raise ValidationException(
                f"Unknown course fields: {', '.join(unknown)}",
                code="INVALID_COURSE_FIELDS",
                details={"fields": unknown},
            )
        if "session_count" in fields and (fields["session_count"] or 0) < 0:
            raise ValidationException("session_count cannot be negative", code="INVALID_COURSE_FIELDS")
        duration = fields.get("session_duration_minutes")
        if duration is not None and duration <= 0:
            raise ValidationException(
                "session_duration_minutes must be positive", code="INVALID_COURSE_FIELDS"
            )
