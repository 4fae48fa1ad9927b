# studio_scheduler/models/class_session.py
"""
Scheduled session model.

One concrete occurrence of a course: absolute start/end timestamps, the
instructor teaching it and the room it is held in. ``capacity`` is the
room capacity snapshotted when the session was planned and is the bound
the booking guard enforces.
"""

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base


class ScheduledSession(Base):
    __tablename__ = "sessions"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    course_id = Column(String(26), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    instructor_id = Column(String(26), ForeignKey("instructors.id"), nullable=False)
    room_id = Column(String(26), ForeignKey("rooms.id"), nullable=False)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    capacity = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    course = relationship("Course", back_populates="sessions")
    room = relationship("Room")
    instructor = relationship("Instructor")
    bookings = relationship("Booking", back_populates="session")

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_sessions_time_order"),
        CheckConstraint("capacity >= 0", name="ck_sessions_capacity"),
        Index("idx_sessions_room_start", "room_id", "start_time"),
        Index("idx_sessions_instructor_start", "instructor_id", "start_time"),
    )

    def __repr__(self) -> str:
        return f"<ScheduledSession {self.id} {self.start_time}-{self.end_time}>"
