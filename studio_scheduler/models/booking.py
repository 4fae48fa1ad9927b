# studio_scheduler/models/booking.py
"""
Booking model.

A client's seat in one scheduled session. Bookings are never deleted:
cancelling flips the status to CANCELLED so the seat is released while the
history is kept. At most one non-cancelled booking may exist per
(session, client) pair; a partial unique index enforces it so that two
racing requests cannot both insert.
"""

from enum import Enum
import logging

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base

logger = logging.getLogger(__name__)


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    CONFIRMED = "CONFIRMED"  # Default - seat taken
    CHECKED_IN = "CHECKED_IN"  # Attendance confirmed by QR scan
    CANCELLED = "CANCELLED"  # Seat released


ACTIVE_BOOKING_STATUSES = (BookingStatus.CONFIRMED.value, BookingStatus.CHECKED_IN.value)

_ACTIVE_PREDICATE = text("status <> 'CANCELLED'")


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    session_id = Column(String(26), ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False)
    client_id = Column(String(26), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=BookingStatus.CONFIRMED.value, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    checked_in_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    session = relationship("ScheduledSession", back_populates="bookings")

    __table_args__ = (
        Index(
            "uq_bookings_active_session_client",
            "session_id",
            "client_id",
            unique=True,
            postgresql_where=_ACTIVE_PREDICATE,
            sqlite_where=_ACTIVE_PREDICATE,
        ),
        Index("idx_bookings_session_status", "session_id", "status"),
    )

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_BOOKING_STATUSES

    def __repr__(self) -> str:
        return f"<Booking {self.id} session={self.session_id} status={self.status}>"
