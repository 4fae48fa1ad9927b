# studio_scheduler/models/waitlist.py
"""
Session waitlist model.

Clients queue for a full session. One row per (session, client): leaving
flips the row to CANCELLED and joining again reuses it. ``position`` is
1-based among the PENDING rows of a session and is renumbered whenever the
queue changes. When a seat is released the first PENDING row is turned into
a booking and marked PROMOTED.
"""

from enum import Enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base


class WaitlistStatus(str, Enum):
    PENDING = "PENDING"  # Queued for a seat
    PROMOTED = "PROMOTED"  # Received a booking
    CANCELLED = "CANCELLED"  # Left the queue or skipped on promotion


class WaitlistEntry(Base):
    __tablename__ = "session_waitlist"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    session_id = Column(String(26), ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False)
    client_id = Column(String(26), nullable=False)
    position = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=WaitlistStatus.PENDING.value)
    booking_id = Column(String(26), ForeignKey("bookings.id"), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    promoted_at = Column(DateTime(timezone=True), nullable=True)

    session = relationship("ScheduledSession")

    __table_args__ = (
        UniqueConstraint("session_id", "client_id", name="uq_waitlist_session_client"),
        Index("idx_waitlist_session_status_position", "session_id", "status", "position"),
        CheckConstraint("position >= 1", name="ck_waitlist_position"),
    )

    def __repr__(self) -> str:
        return f"<WaitlistEntry {self.id} session={self.session_id} #{self.position} {self.status}>"
