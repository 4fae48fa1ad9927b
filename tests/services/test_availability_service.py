from datetime import date, datetime, time, timedelta, timezone

import pytest

from studio_scheduler.core.exceptions import NotFoundException, ValidationException
from studio_scheduler.core.timezone_utils import combine_local
from studio_scheduler.models.availability import OwnerType
from studio_scheduler.schemas.availability import (
    DateBlockData,
    OverrideWeekData,
    RecurringBlockData,
    TimeRange,
    WeeklyPattern,
)
from studio_scheduler.schemas.blackout import BlackoutReason
from studio_scheduler.services.availability_service import AvailabilityService
from studio_scheduler.services.blackout_resolver import BlackoutResolverService

MONDAY = 1


@pytest.fixture
def service(db):
    return AvailabilityService(db)


def mornings() -> WeeklyPattern:
    return WeeklyPattern(days={MONDAY: [TimeRange(start="08:00", end="12:00")]})


class TestWeeklyPattern:
    def test_replace_and_read_back(self, service, instructor):
        stored = service.replace_weekly_pattern(OwnerType.INSTRUCTOR, instructor.id, mornings())

        assert stored.ranges_for(MONDAY) == [TimeRange(start="08:00", end="12:00")]
        assert stored.ranges_for(2) == []
        assert service.get_weekly_pattern(OwnerType.INSTRUCTOR, instructor.id) == stored

    def test_replace_is_wholesale(self, service, instructor):
        service.replace_weekly_pattern(OwnerType.INSTRUCTOR, instructor.id, mornings())
        evenings = WeeklyPattern(days={3: [TimeRange(start="18:00", end="21:00")]})

        stored = service.replace_weekly_pattern(OwnerType.INSTRUCTOR, instructor.id, evenings)

        assert stored.ranges_for(MONDAY) == []
        assert stored.ranges_for(3) == [TimeRange(start="18:00", end="21:00")]

    def test_empty_pattern_removes_declaration(self, service, instructor):
        service.replace_weekly_pattern(OwnerType.INSTRUCTOR, instructor.id, mornings())

        stored = service.replace_weekly_pattern(
            OwnerType.INSTRUCTOR, instructor.id, WeeklyPattern.empty()
        )

        assert stored is None
        assert service.get_weekly_pattern(OwnerType.INSTRUCTOR, instructor.id) is None


class TestOverrideWeeks:
    def test_save_replaces_existing_week(self, service, instructor):
        first = OverrideWeekData(week_key="2024-W01", label="Holidays", days=mornings())
        service.save_override_week(OwnerType.INSTRUCTOR, instructor.id, first)

        saved = service.save_override_week(
            OwnerType.INSTRUCTOR,
            instructor.id,
            OverrideWeekData(week_start_date=date(2024, 1, 3), label="Reduced"),
        )

        weeks = service.list_override_weeks(OwnerType.INSTRUCTOR, instructor.id)
        assert len(weeks) == 1
        assert saved.week_key == "2024-W01"
        assert weeks[0].label == "Reduced"
        assert weeks[0].days.is_empty

    def test_list_filters_by_window(self, service, instructor):
        for key in ("2024-W01", "2024-W05", "2024-W10"):
            service.save_override_week(
                OwnerType.INSTRUCTOR, instructor.id, OverrideWeekData(week_key=key)
            )

        weeks = service.list_override_weeks(
            OwnerType.INSTRUCTOR, instructor.id, date(2024, 1, 20), date(2024, 2, 10)
        )

        assert [w.week_key for w in weeks] == ["2024-W05"]

    def test_delete(self, service, instructor):
        service.save_override_week(
            OwnerType.INSTRUCTOR, instructor.id, OverrideWeekData(week_key="2024-W01")
        )

        service.delete_override_week(OwnerType.INSTRUCTOR, instructor.id, "2024-W01")

        assert service.list_override_weeks(OwnerType.INSTRUCTOR, instructor.id) == []
        with pytest.raises(NotFoundException):
            service.delete_override_week(OwnerType.INSTRUCTOR, instructor.id, "2024-W01")

    def test_delete_with_invalid_key(self, service, instructor):
        with pytest.raises(ValidationException) as exc_info:
            service.delete_override_week(OwnerType.INSTRUCTOR, instructor.id, "2024-13")
        assert exc_info.value.code == "INVALID_WEEK_KEY"


class TestBlocks:
    def test_recurring_block_lifecycle(self, service, room):
        block = service.add_recurring_block(
            OwnerType.ROOM,
            room.id,
            RecurringBlockData(weekday=MONDAY, start_time="14:00", end_time="16:00", reason="Cleaning"),
        )

        assert block.id is not None
        assert service.list_recurring_blocks(OwnerType.ROOM, room.id)[0].start_time == time(14, 0)

        service.remove_recurring_block(OwnerType.ROOM, room.id, block.id)

        assert service.list_recurring_blocks(OwnerType.ROOM, room.id) == []
        with pytest.raises(NotFoundException):
            service.remove_recurring_block(OwnerType.ROOM, room.id, block.id)

    def test_room_date_block_lifecycle(self, service, room):
        starts = datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)
        block = service.add_room_date_block(
            room.id, DateBlockData(starts_at=starts, ends_at=starts + timedelta(hours=4))
        )

        listed = service.list_room_date_blocks(room.id)
        assert [b.id for b in listed] == [block.id]
        assert listed[0].starts_at == starts

        service.remove_room_date_block(room.id, block.id)

        assert service.list_room_date_blocks(room.id) == []
        with pytest.raises(NotFoundException):
            service.remove_room_date_block(room.id, block.id)


class TestResolverAgainstStoredRules:
    def test_override_week_makes_instructor_unavailable(self, db, service, room, instructor):
        service.replace_weekly_pattern(OwnerType.INSTRUCTOR, instructor.id, mornings())
        service.save_override_week(
            OwnerType.INSTRUCTOR, instructor.id, OverrideWeekData(week_key="2024-W01")
        )
        resolver = BlackoutResolverService(db)

        def check(day: date):
            start = combine_local(day, time(8, 30))
            return resolver.check(room.id, instructor.id, start, start + timedelta(hours=1))

        blocked = check(date(2024, 1, 1))
        assert blocked.reason == BlackoutReason.INSTRUCTOR_UNAVAILABLE
        assert blocked.details["source"] == "override_week"
        assert check(date(2024, 1, 8)).allowed

    def test_undeclared_instructor_is_unrestricted(self, db, room, instructor):
        start = combine_local(date(2024, 1, 2), time(3, 0))

        result = BlackoutResolverService(db).check(
            room.id, instructor.id, start, start + timedelta(hours=1)
        )

        assert result.allowed
