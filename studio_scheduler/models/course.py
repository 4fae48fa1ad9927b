# studio_scheduler/models/course.py
"""
Course model.

A course is a target number of sessions of a class, with defaults
(duration, lead instructor, room) that seed every planned session.
``scheduled_sessions`` is a counter maintained by the session planner:
it only ever grows by the number of sessions created in a planning
transaction, it is never recomputed from scratch.
"""

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base


class Course(Base):
    __tablename__ = "courses"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    name = Column(String(200), nullable=False)
    session_count = Column(Integer, nullable=False, default=0)
    session_duration_minutes = Column(Integer, nullable=False, default=60)
    lead_instructor_id = Column(
        String(26), ForeignKey("instructors.id", ondelete="SET NULL"), nullable=True
    )
    default_room_id = Column(String(26), ForeignKey("rooms.id", ondelete="SET NULL"), nullable=True)
    scheduled_sessions = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    lead_instructor = relationship("Instructor")
    default_room = relationship("Room")
    sessions = relationship("ScheduledSession", back_populates="course")

    __table_args__ = (
        CheckConstraint("session_count >= 0", name="ck_courses_session_count"),
        CheckConstraint("scheduled_sessions >= 0", name="ck_courses_scheduled_sessions"),
    )

    @property
    def pending_sessions(self) -> int:
        """Sessions the planner still has to produce."""
        return max((self.session_count or 0) - (self.scheduled_sessions or 0), 0)

    def __repr__(self) -> str:
        return f"<Course {self.name} {self.scheduled_sessions}/{self.session_count}>"
