# studio_scheduler/repositories/course_repository.py
"""
Course repository.

The planner serializes on the course row: it reads the course ``FOR UPDATE``
(or, on SQLite, inside a ``BEGIN IMMEDIATE`` transaction) and bumps
``scheduled_sessions`` in the same transaction, so two planning requests for
one course cannot both consume the same quota.
"""

import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.exceptions import QuotaExceededException
from ..models.course import Course
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class CourseRepository(BaseRepository[Course]):
    def __init__(self, db: Session):
        super().__init__(db, Course)

    def get_for_planning(self, course_id: str) -> Optional[Course]:
        """Course row locked for the rest of the planning transaction."""
        return self.get_by_id(course_id, for_update=True)

    def increment_scheduled_sessions(self, course: Course, created: int) -> int:
        """
        Add ``created`` to the course counter and return the new total.

        Issued as ``scheduled_sessions = scheduled_sessions + :n`` guarded by
        ``scheduled_sessions + :n <= session_count``, so the counter is only
        ever adjusted and can never pass the quota.

        Raises:
            QuotaExceededException: the quota has fewer than ``created`` sessions left
        """
        if created <= 0:
            return int(course.scheduled_sessions or 0)
        scheduled = func.coalesce(Course.scheduled_sessions, 0)
        with self._wrap_errors(f"bump scheduled sessions of course {course.id}"):
            updated = (
                self.db.query(Course)
                .filter(
                    Course.id == course.id,
                    scheduled + created <= func.coalesce(Course.session_count, 0),
                )
                .update({Course.scheduled_sessions: scheduled + created}, synchronize_session=False)
            )
            self.db.flush()
            self.db.refresh(course)
        if not updated:
            pending = max((course.session_count or 0) - (course.scheduled_sessions or 0), 0)
            self.logger.warning(
                "Course quota exhausted while scheduling",
                extra={"course_id": course.id, "requested": created, "pending": pending},
            )
            raise QuotaExceededException(requested=created, pending=pending)
        return int(course.scheduled_sessions or 0)
