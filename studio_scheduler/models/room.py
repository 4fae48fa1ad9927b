# studio_scheduler/models/room.py
"""
Room models.

Rooms carry the capacity that bounds bookings for every session held in
them, plus one-off date blocks (maintenance, private events) that make the
room unavailable for an absolute time window.
"""

import logging

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base

logger = logging.getLogger(__name__)


class Room(Base):
    """A bookable studio room."""

    __tablename__ = "rooms"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    name = Column(String(120), nullable=False)
    capacity = Column(Integer, nullable=False, default=0)
    location = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    date_blocks = relationship(
        "RoomDateBlock", back_populates="room", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Room {self.name} capacity={self.capacity}>"


class RoomDateBlock(Base):
    """One-off exclusion window for a room; may span several days."""

    __tablename__ = "room_blocks"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    room_id = Column(String(26), ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False)
    starts_at = Column(DateTime(timezone=True), nullable=False)
    ends_at = Column(DateTime(timezone=True), nullable=False)
    reason = Column(String(255), nullable=True)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    room = relationship("Room", back_populates="date_blocks")

    __table_args__ = (
        CheckConstraint("starts_at < ends_at", name="ck_room_blocks_range"),
        Index("idx_room_blocks_room_range", "room_id", "starts_at", "ends_at"),
    )

    def __repr__(self) -> str:
        return f"<RoomDateBlock {self.room_id} {self.starts_at}-{self.ends_at}>"
