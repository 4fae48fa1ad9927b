# studio_scheduler/models/availability.py
"""
Availability and blackout rule models.

Weekly availability rows and override weeks describe when an owner
(instructor or room) IS available: an inclusion list. Recurring blocks
describe when an owner is NOT available: an exclusion list that applies
every week until removed. Weekdays are stored Sunday-first (0-6).

Classes:
    WeeklyAvailabilitySlot: One range of an owner's default weekly pattern
    OverrideWeek: Dated week that fully replaces the default pattern
    OverrideWeekSlot: One range of an override week
    RecurringBlock: Weekly exclusion window for a room or instructor
"""

from enum import Enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    SmallInteger,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base


class OwnerType(str, Enum):
    """Kind of resource a pattern or block belongs to."""

    INSTRUCTOR = "instructor"
    ROOM = "room"


class WeeklyAvailabilitySlot(Base):
    __tablename__ = "weekly_availability"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    owner_type = Column(String(16), nullable=False)
    owner_id = Column(String(26), nullable=False)
    weekday = Column(SmallInteger, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("weekday >= 0 AND weekday <= 6", name="ck_weekly_availability_weekday"),
        UniqueConstraint(
            "owner_type",
            "owner_id",
            "weekday",
            "start_time",
            "end_time",
            name="uq_weekly_availability_range",
        ),
        Index("idx_weekly_availability_owner", "owner_type", "owner_id", "weekday"),
    )


class OverrideWeek(Base):
    __tablename__ = "override_weeks"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    owner_type = Column(String(16), nullable=False)
    owner_id = Column(String(26), nullable=False)
    week_start_date = Column(Date, nullable=False)
    label = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    slots = relationship(
        "OverrideWeekSlot",
        back_populates="override_week",
        cascade="all, delete-orphan",
        order_by="OverrideWeekSlot.start_time",
    )

    __table_args__ = (
        UniqueConstraint("owner_type", "owner_id", "week_start_date", name="uq_override_week"),
        Index("idx_override_weeks_owner_week", "owner_type", "owner_id", "week_start_date"),
    )


class OverrideWeekSlot(Base):
    __tablename__ = "override_week_slots"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    override_id = Column(
        String(26), ForeignKey("override_weeks.id", ondelete="CASCADE"), nullable=False
    )
    weekday = Column(SmallInteger, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    override_week = relationship("OverrideWeek", back_populates="slots")

    __table_args__ = (
        CheckConstraint("weekday >= 0 AND weekday <= 6", name="ck_override_slots_weekday"),
    )


class RecurringBlock(Base):
    """Weekly blackout window, indefinitely repeating until deleted."""

    __tablename__ = "recurring_blocks"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    owner_type = Column(String(16), nullable=False)
    owner_id = Column(String(26), nullable=False)
    weekday = Column(SmallInteger, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    reason = Column(String(255), nullable=True)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("weekday >= 0 AND weekday <= 6", name="ck_recurring_blocks_weekday"),
        Index("idx_recurring_blocks_owner", "owner_type", "owner_id", "weekday"),
    )

    def __repr__(self) -> str:
        return f"<RecurringBlock {self.owner_type}:{self.owner_id} {self.weekday} {self.start_time}-{self.end_time}>"
