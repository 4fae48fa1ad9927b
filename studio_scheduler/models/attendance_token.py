# studio_scheduler/models/attendance_token.py
"""
Attendance token model.

Short-lived opaque tokens rendered as QR codes for check-in. Two scopes exist:
booking tokens (issued with a booking, expiring a few hours after the
session starts) and session tokens (generated by the instructor on demand,
expiring after a short countdown). ``scope_key`` identifies the single live
token per booking or per session: issuing a new one overwrites the row, so
the previous token stops resolving immediately. Expiry is evaluated lazily;
nothing sweeps expired rows.
"""

from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.sql import func
import ulid

from ..database import Base


class AttendanceTokenKind(str, Enum):
    BOOKING = "BOOKING"
    SESSION = "SESSION"


class AttendanceToken(Base):
    __tablename__ = "attendance_tokens"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    scope_key = Column(String(64), nullable=False, unique=True)
    kind = Column(String(16), nullable=False)
    session_id = Column(String(26), ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False)
    booking_id = Column(String(26), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=True)
    issued_by_instructor_id = Column(String(26), nullable=True)
    token = Column(String(32), nullable=False, unique=True, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    @staticmethod
    def session_scope(session_id: str) -> str:
        return f"session:{session_id}"

    @staticmethod
    def booking_scope(booking_id: str) -> str:
        return f"booking:{booking_id}"

    def __repr__(self) -> str:
        return f"<AttendanceToken {self.scope_key} expires={self.expires_at}>"
