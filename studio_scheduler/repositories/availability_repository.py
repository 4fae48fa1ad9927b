# studio_scheduler/repositories/availability_repository.py
"""
Availability repository.

Reads and writes weekly patterns, override weeks, recurring blocks and room
date blocks. Rows are converted to the typed value objects in
``schemas.availability`` before leaving this module.
"""

from datetime import date, datetime, timedelta
import logging
from typing import List, Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..core.exceptions import RepositoryException
from ..models.availability import (
    OverrideWeek,
    OverrideWeekSlot,
    OwnerType,
    RecurringBlock,
    WeeklyAvailabilitySlot,
)
from ..models.room import RoomDateBlock
from ..schemas.availability import (
    AvailabilitySnapshot,
    DateBlockData,
    OverrideWeekData,
    RecurringBlockData,
    WeeklyPattern,
)
from ..utils.week_keys import week_start
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


def _recurring_to_data(row: RecurringBlock) -> RecurringBlockData:
    return RecurringBlockData(
        id=row.id,
        weekday=row.weekday,
        start_time=row.start_time,
        end_time=row.end_time,
        reason=row.reason,
        note=row.note,
    )


def _date_block_to_data(row: RoomDateBlock) -> DateBlockData:
    return DateBlockData(
        id=row.id,
        starts_at=row.starts_at,
        ends_at=row.ends_at,
        reason=row.reason,
        note=row.note,
    )


def _override_to_data(row: OverrideWeek) -> OverrideWeekData:
    return OverrideWeekData(
        id=row.id,
        week_start_date=row.week_start_date,
        label=row.label,
        notes=row.notes,
        days=WeeklyPattern.from_rows(row.slots),
    )


class AvailabilityRepository(BaseRepository[WeeklyAvailabilitySlot]):
    """
    Data access for availability configuration of rooms and instructors.

    Writes here are administrator actions; nothing in this repository is on
    the booking hot path.
    """

    def __init__(self, db: Session):
        super().__init__(db, WeeklyAvailabilitySlot)

    # Weekly pattern

    def get_weekly_pattern(self, owner_type: OwnerType, owner_id: str) -> Optional[WeeklyPattern]:
        """Default weekly pattern, or None when the owner never declared one."""
        rows = self._execute_query(
            self._build_query()
            .filter(
                WeeklyAvailabilitySlot.owner_type == owner_type.value,
                WeeklyAvailabilitySlot.owner_id == owner_id,
            )
            .order_by(WeeklyAvailabilitySlot.weekday, WeeklyAvailabilitySlot.start_time)
        )
        if not rows:
            return None
        return WeeklyPattern.from_rows(rows)

    def replace_weekly_pattern(
        self, owner_type: OwnerType, owner_id: str, pattern: WeeklyPattern
    ) -> int:
        """Full replacement of the default pattern. Returns the number of ranges stored."""
        try:
            (
                self.db.query(WeeklyAvailabilitySlot)
                .filter(
                    WeeklyAvailabilitySlot.owner_type == owner_type.value,
                    WeeklyAvailabilitySlot.owner_id == owner_id,
                )
                .delete(synchronize_session=False)
            )
            rows = [
                WeeklyAvailabilitySlot(
                    owner_type=owner_type.value,
                    owner_id=owner_id,
                    weekday=weekday,
                    start_time=start,
                    end_time=end,
                )
                for weekday, start, end in self._dedupe(pattern.to_rows())
            ]
            self.db.add_all(rows)
            self.db.flush()
            return len(rows)
        except SQLAlchemyError as e:
            self.logger.error(f"Error replacing weekly pattern for {owner_type.value} {owner_id}: {e}")
            raise RepositoryException(f"Failed to replace weekly pattern: {str(e)}")

    @staticmethod
    def _dedupe(rows):
        seen = set()
        unique = []
        for row in rows:
            if row in seen:
                continue
            seen.add(row)
            unique.append(row)
        return unique

    # Override weeks

    def _override_query(self, owner_type: OwnerType, owner_id: str):
        return (
            self.db.query(OverrideWeek)
            .options(selectinload(OverrideWeek.slots))
            .filter(
                OverrideWeek.owner_type == owner_type.value,
                OverrideWeek.owner_id == owner_id,
            )
        )

    def get_override_row(
        self, owner_type: OwnerType, owner_id: str, week_start_date: date
    ) -> Optional[OverrideWeek]:
        result = (
            self._override_query(owner_type, owner_id)
            .filter(OverrideWeek.week_start_date == week_start(week_start_date))
            .first()
        )
        return cast(Optional[OverrideWeek], result)

    def list_override_weeks(
        self,
        owner_type: OwnerType,
        owner_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[OverrideWeekData]:
        """Override weeks sorted by week, optionally limited to weeks touching [start, end]."""
        query = self._override_query(owner_type, owner_id)
        if start_date is not None:
            query = query.filter(OverrideWeek.week_start_date >= week_start(start_date))
        if end_date is not None:
            query = query.filter(OverrideWeek.week_start_date <= end_date)
        rows = self._execute_query(query.order_by(OverrideWeek.week_start_date))
        return [_override_to_data(row) for row in rows]

    def upsert_override_week(
        self, owner_type: OwnerType, owner_id: str, data: OverrideWeekData
    ) -> OverrideWeekData:
        """
        Create or replace the override for ``data.week_start_date``.

        Slots of an existing override are replaced wholesale, never merged.
        """
        assert data.week_start_date is not None
        try:
            row = self.get_override_row(owner_type, owner_id, data.week_start_date)
            if row is None:
                row = OverrideWeek(
                    owner_type=owner_type.value,
                    owner_id=owner_id,
                    week_start_date=data.week_start_date,
                )
                self.db.add(row)
            row.label = data.label
            row.notes = data.notes
            row.slots = [
                OverrideWeekSlot(weekday=weekday, start_time=start, end_time=end)
                for weekday, start, end in self._dedupe(data.days.to_rows())
            ]
            self.db.flush()
            return _override_to_data(row)
        except SQLAlchemyError as e:
            self.logger.error(f"Error saving override week {data.week_key} for {owner_id}: {e}")
            raise RepositoryException(f"Failed to save override week: {str(e)}")

    def delete_override_week(self, owner_type: OwnerType, owner_id: str, week_start_date: date) -> bool:
        row = self.get_override_row(owner_type, owner_id, week_start_date)
        if row is None:
            return False
        with self._wrap_errors(f"delete override week {week_start_date} of {owner_id}"):
            self.db.delete(row)
            self.db.flush()
        return True

    # Recurring blocks

    def list_recurring_blocks(self, owner_type: OwnerType, owner_id: str) -> List[RecurringBlockData]:
        rows = self._execute_query(
            self.db.query(RecurringBlock)
            .filter(
                RecurringBlock.owner_type == owner_type.value,
                RecurringBlock.owner_id == owner_id,
            )
            .order_by(RecurringBlock.weekday, RecurringBlock.start_time)
        )
        return [_recurring_to_data(row) for row in rows]

    def add_recurring_block(
        self, owner_type: OwnerType, owner_id: str, data: RecurringBlockData
    ) -> RecurringBlockData:
        row = RecurringBlock(
            owner_type=owner_type.value,
            owner_id=owner_id,
            weekday=data.weekday,
            start_time=data.start_time,
            end_time=data.end_time,
            reason=data.reason,
            note=data.note,
        )
        with self._wrap_errors(f"add recurring block for {owner_id}"):
            self.db.add(row)
            self.db.flush()
        return _recurring_to_data(row)

    def delete_recurring_block(self, owner_type: OwnerType, owner_id: str, block_id: str) -> bool:
        query = self.db.query(RecurringBlock).filter(
            RecurringBlock.id == block_id,
            RecurringBlock.owner_type == owner_type.value,
            RecurringBlock.owner_id == owner_id,
        )
        with self._wrap_errors(f"delete recurring block {block_id}"):
            deleted = query.delete(synchronize_session=False)
            self.db.flush()
        return bool(deleted)

    # Room date blocks

    def list_room_date_blocks(
        self,
        room_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[DateBlockData]:
        """Date blocks of a room, optionally only those overlapping [start, end)."""
        query = self.db.query(RoomDateBlock).filter(RoomDateBlock.room_id == room_id)
        if end is not None:
            query = query.filter(RoomDateBlock.starts_at < end)
        if start is not None:
            query = query.filter(RoomDateBlock.ends_at > start)
        rows = self._execute_query(query.order_by(RoomDateBlock.starts_at))
        return [_date_block_to_data(row) for row in rows]

    def add_room_date_block(self, room_id: str, data: DateBlockData) -> DateBlockData:
        row = RoomDateBlock(
            room_id=room_id,
            starts_at=data.starts_at,
            ends_at=data.ends_at,
            reason=data.reason,
            note=data.note,
        )
        with self._wrap_errors(f"add date block for room {room_id}"):
            self.db.add(row)
            self.db.flush()
        return _date_block_to_data(row)

    def delete_room_date_block(self, room_id: str, block_id: str) -> bool:
        query = self.db.query(RoomDateBlock).filter(
            RoomDateBlock.id == block_id, RoomDateBlock.room_id == room_id
        )
        with self._wrap_errors(f"delete date block {block_id}"):
            deleted = query.delete(synchronize_session=False)
            self.db.flush()
        return bool(deleted)

    # Snapshot

    def load_snapshot(
        self,
        room_id: str,
        instructor_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> AvailabilitySnapshot:
        """
        Everything the blackout resolver needs for one room/instructor pair.

        When a window is given, date blocks and override weeks are limited
        to those that can touch it (one day of slack either side covers the
        UTC/local date shift).
        """
        first_day = (start - timedelta(days=1)).date() if start is not None else None
        last_day = (end + timedelta(days=1)).date() if end is not None else None
        return AvailabilitySnapshot(
            room_id=room_id,
            instructor_id=instructor_id,
            room_date_blocks=self.list_room_date_blocks(room_id, start, end),
            room_recurring_blocks=self.list_recurring_blocks(OwnerType.ROOM, room_id),
            instructor_recurring_blocks=self.list_recurring_blocks(
                OwnerType.INSTRUCTOR, instructor_id
            ),
            instructor_weekly=self.get_weekly_pattern(OwnerType.INSTRUCTOR, instructor_id),
            instructor_overrides=self.list_override_weeks(
                OwnerType.INSTRUCTOR, instructor_id, first_day, last_day
            ),
        )
