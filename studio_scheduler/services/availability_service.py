# studio_scheduler/services/availability_service.py
"""
Availability administration.

Administrator-facing writes for weekly patterns, override weeks, recurring
blocks and room date blocks. These are read-mostly configuration; each call
is its own short transaction.
"""

from datetime import date
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.exceptions import NotFoundException, ValidationException
from ..models.availability import OwnerType
from ..repositories.factory import RepositoryFactory
from ..schemas.availability import (
    DateBlockData,
    OverrideWeekData,
    RecurringBlockData,
    WeeklyPattern,
)
from ..utils.week_keys import week_start_date_from_key
from .base import BaseService

logger = logging.getLogger(__name__)


class AvailabilityService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.availability_repository = RepositoryFactory.create_availability_repository(db)

    # Weekly pattern

    def get_weekly_pattern(self, owner_type: OwnerType, owner_id: str) -> Optional[WeeklyPattern]:
        return self.availability_repository.get_weekly_pattern(owner_type, owner_id)

    @BaseService.measure_operation("replace_weekly_pattern")
    def replace_weekly_pattern(
        self, owner_type: OwnerType, owner_id: str, pattern: WeeklyPattern
    ) -> Optional[WeeklyPattern]:
        """
        Replace the owner's default pattern wholesale.

        Ranges with empty or inverted bounds are dropped. Storing no ranges
        at all removes the declaration, which leaves an instructor
        unrestricted outside override weeks.
        """
        self.log_operation("replace_weekly_pattern", owner_type=owner_type.value, owner_id=owner_id)
        with self.transaction():
            stored = self.availability_repository.replace_weekly_pattern(
                owner_type, owner_id, pattern
            )
            if pattern.is_empty:
                self.logger.info(f"Cleared weekly pattern for {owner_type.value} {owner_id}")
            self.logger.debug(f"Stored {stored} weekly ranges for {owner_type.value} {owner_id}")
            return self.availability_repository.get_weekly_pattern(owner_type, owner_id)

    # Override weeks

    def list_override_weeks(
        self,
        owner_type: OwnerType,
        owner_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[OverrideWeekData]:
        return self.availability_repository.list_override_weeks(
            owner_type, owner_id, start_date, end_date
        )

    @BaseService.measure_operation("save_override_week")
    def save_override_week(
        self, owner_type: OwnerType, owner_id: str, override: OverrideWeekData
    ) -> OverrideWeekData:
        """Create the override for its week, or replace the existing one in place."""
        self.log_operation(
            "save_override_week",
            owner_type=owner_type.value,
            owner_id=owner_id,
            week_key=override.week_key,
        )
        with self.transaction():
            return self.availability_repository.upsert_override_week(owner_type, owner_id, override)

    @BaseService.measure_operation("delete_override_week")
    def delete_override_week(self, owner_type: OwnerType, owner_id: str, week_key: str) -> None:
        week_start_date = week_start_date_from_key(week_key)
        if week_start_date is None:
            raise ValidationException(
                f"Invalid week key: {week_key}", code="INVALID_WEEK_KEY", details={"week_key": week_key}
            )
        with self.transaction():
            deleted = self.availability_repository.delete_override_week(
                owner_type, owner_id, week_start_date
            )
            if not deleted:
                raise NotFoundException(
                    f"No override week {week_key} for {owner_type.value} {owner_id}",
                    code="OVERRIDE_WEEK_NOT_FOUND",
                )

    # Recurring blocks

    def list_recurring_blocks(self, owner_type: OwnerType, owner_id: str) -> List[RecurringBlockData]:
        return self.availability_repository.list_recurring_blocks(owner_type, owner_id)

    @BaseService.measure_operation("add_recurring_block")
    def add_recurring_block(
        self, owner_type: OwnerType, owner_id: str, block: RecurringBlockData
    ) -> RecurringBlockData:
        self.log_operation(
            "add_recurring_block",
            owner_type=owner_type.value,
            owner_id=owner_id,
            weekday=block.weekday,
        )
        with self.transaction():
            return self.availability_repository.add_recurring_block(owner_type, owner_id, block)

    @BaseService.measure_operation("remove_recurring_block")
    def remove_recurring_block(self, owner_type: OwnerType, owner_id: str, block_id: str) -> None:
        with self.transaction():
            if not self.availability_repository.delete_recurring_block(owner_type, owner_id, block_id):
                raise NotFoundException(
                    f"Recurring block {block_id} not found", code="RECURRING_BLOCK_NOT_FOUND"
                )

    # Room date blocks

    def list_room_date_blocks(self, room_id: str) -> List[DateBlockData]:
        return self.availability_repository.list_room_date_blocks(room_id)

    @BaseService.measure_operation("add_room_date_block")
    def add_room_date_block(self, room_id: str, block: DateBlockData) -> DateBlockData:
        self.log_operation("add_room_date_block", room_id=room_id)
        with self.transaction():
            return self.availability_repository.add_room_date_block(room_id, block)

    @BaseService.measure_operation("remove_room_date_block")
    def remove_room_date_block(self, room_id: str, block_id: str) -> None:
        with self.transaction():
            if not self.availability_repository.delete_room_date_block(room_id, block_id):
                raise NotFoundException(
                    f"Room block {block_id} not found", code="ROOM_BLOCK_NOT_FOUND"
                )
