from datetime import date, datetime, time, timezone

import pytest

from studio_scheduler.core.exceptions import (
    CourseFullyScheduledException,
    IncompleteDraftException,
    InvalidDurationException,
    MissingInstructorException,
    QuotaExceededException,
    RoomNotAssignedException,
    ValidationException,
)
from studio_scheduler.schemas.scheduling import (
    CoursePlanningContext,
    DraftField,
    DraftSession,
    Frequency,
    RecurringPlanRequest,
    SinglePlanRequest,
)
from studio_scheduler.services.session_planner import (
    apply_draft_edit,
    build_drafts,
    validate_drafts,
)

TZ = "Europe/Madrid"


def make_context(**overrides) -> CoursePlanningContext:
    values = dict(
        course_id="course-1",
        session_count=6,
        scheduled_sessions=0,
        session_duration_minutes=50,
        lead_instructor_id="lead-1",
        default_room_id="room-1",
        room_capacity=10,
    )
    values.update(overrides)
    return CoursePlanningContext(**values)


def recurring_request(**overrides) -> RecurringPlanRequest:
    values = dict(start_date=date(2024, 1, 1), weekdays={1, 3}, count=4, start_time="09:00")
    values.update(overrides)
    return RecurringPlanRequest(**values)


def draft(**overrides) -> DraftSession:
    values = dict(session_date=date(2024, 1, 1), start_time="09:00")
    values.update(overrides)
    return DraftSession(**values)


class TestBuildDrafts:
    def test_recurring_drafts_are_capped_by_pending_quota(self):
        context = make_context(session_count=6, scheduled_sessions=4)

        drafts = build_drafts(Frequency.RECURRING, recurring_request(count=5), context)

        assert [d.session_date for d in drafts] == [date(2024, 1, 1), date(2024, 1, 3)]

    def test_recurring_drafts_use_course_defaults(self):
        drafts = build_drafts(Frequency.RECURRING, recurring_request(), make_context())

        assert len(drafts) == 4
        assert {d.duration_minutes for d in drafts} == {50}
        assert {d.instructor_id for d in drafts} == {"lead-1"}
        assert {d.start_time for d in drafts} == {time(9, 0)}
        assert not any(d.start_time_edited or d.duration_edited or d.instructor_edited for d in drafts)

    def test_request_values_override_course_defaults(self):
        request = recurring_request(duration_minutes=75, instructor_id="sub-1")

        drafts = build_drafts(Frequency.RECURRING, request, make_context())

        assert {d.duration_minutes for d in drafts} == {75}
        assert {d.instructor_id for d in drafts} == {"sub-1"}

    def test_nothing_pending_gives_no_drafts(self):
        context = make_context(scheduled_sessions=6)

        assert build_drafts(Frequency.RECURRING, recurring_request(), context) == []
        assert (
            build_drafts(
                Frequency.ONCE,
                SinglePlanRequest(session_date=date(2024, 1, 1), start_time="10:00"),
                context,
            )
            == []
        )

    def test_single_session_gives_one_draft(self):
        request = SinglePlanRequest(session_date=date(2024, 2, 14), start_time="18:30")

        drafts = build_drafts(Frequency.ONCE, request, make_context())

        assert len(drafts) == 1
        assert drafts[0].session_date == date(2024, 2, 14)
        assert drafts[0].start_time == time(18, 30)

    def test_mismatched_request_type_is_rejected(self):
        with pytest.raises(ValidationException) as exc_info:
            build_drafts(Frequency.ONCE, recurring_request(), make_context())
        assert exc_info.value.code == "INVALID_PLAN_REQUEST"

        with pytest.raises(ValidationException):
            build_drafts(
                Frequency.RECURRING,
                SinglePlanRequest(session_date=date(2024, 1, 1), start_time="10:00"),
                make_context(),
            )

    def test_edited_fields_survive_new_defaults(self):
        context = make_context()
        drafts = build_drafts(Frequency.RECURRING, recurring_request(), context)
        drafts = apply_draft_edit(drafts, 1, DraftField.START_TIME, "07:15")
        drafts = apply_draft_edit(drafts, 1, DraftField.INSTRUCTOR, "sub-2")

        rebuilt = build_drafts(
            Frequency.RECURRING,
            recurring_request(start_time="11:00", duration_minutes=90),
            context,
            previous=drafts,
        )

        assert rebuilt[1].start_time == time(7, 15)
        assert rebuilt[1].instructor_id == "sub-2"
        assert rebuilt[1].duration_minutes == 90
        assert rebuilt[1].start_time_edited and rebuilt[1].instructor_edited
        assert rebuilt[0].start_time == time(11, 0)
        assert rebuilt[0].instructor_id == "lead-1"

    def test_recurring_weekday_outside_range_is_rejected(self):
        with pytest.raises(ValueError):
            recurring_request(weekdays={7})


class TestApplyDraftEdit:
    def test_returns_copy_and_marks_field(self):
        drafts = [draft(duration_minutes=50), draft(duration_minutes=50)]

        edited = apply_draft_edit(drafts, 0, DraftField.DURATION, "45")

        assert edited[0].duration_minutes == 45
        assert edited[0].duration_edited
        assert drafts[0].duration_minutes == 50
        assert not drafts[0].duration_edited
        assert edited[1] is drafts[1]

    @pytest.mark.parametrize("value", ["0", "-10", "abc", None])
    def test_invalid_duration_keeps_previous_value(self, value):
        edited = apply_draft_edit([draft(duration_minutes=50)], 0, DraftField.DURATION, value)

        assert edited[0].duration_minutes == 50
        assert edited[0].duration_edited

    def test_blank_instructor_falls_back_to_default(self):
        edited = apply_draft_edit([draft(instructor_id="sub-1")], 0, DraftField.INSTRUCTOR, "  ")

        assert edited[0].instructor_id is None
        assert edited[0].instructor_edited

    def test_index_out_of_range(self):
        with pytest.raises(ValidationException) as exc_info:
            apply_draft_edit([draft()], 3, DraftField.START_TIME, "10:00")

        assert exc_info.value.code == "DRAFT_INDEX_OUT_OF_RANGE"


class TestValidateDrafts:
    def test_resolves_local_times_to_utc(self):
        resolved = validate_drafts([draft(start_time="09:00")], make_context(), TZ)

        assert resolved[0].start_time == datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc)
        assert resolved[0].end_time == datetime(2024, 1, 1, 8, 50, tzinfo=timezone.utc)
        assert resolved[0].instructor_id == "lead-1"
        assert resolved[0].duration_minutes == 50

    def test_draft_values_win_over_course_defaults(self):
        resolved = validate_drafts(
            [draft(duration_minutes=30, instructor_id="sub-1")], make_context(), TZ
        )

        assert resolved[0].duration_minutes == 30
        assert resolved[0].instructor_id == "sub-1"

    def test_missing_room(self):
        with pytest.raises(RoomNotAssignedException) as exc_info:
            validate_drafts([draft()], make_context(default_room_id=None, room_capacity=None), TZ)
        assert exc_info.value.details["reason"] == "missing_room"

    def test_room_without_capacity(self):
        with pytest.raises(RoomNotAssignedException) as exc_info:
            validate_drafts([draft()], make_context(room_capacity=0), TZ)
        assert exc_info.value.details["reason"] == "invalid_capacity"

    def test_fully_scheduled_course(self):
        with pytest.raises(CourseFullyScheduledException):
            validate_drafts([draft()], make_context(scheduled_sessions=6), TZ)

    def test_empty_drafts(self):
        with pytest.raises(ValidationException) as exc_info:
            validate_drafts([], make_context(), TZ)
        assert exc_info.value.code == "NO_DRAFTS"

    def test_incomplete_draft_reports_index(self):
        drafts = [draft(), draft(start_time=None)]

        with pytest.raises(IncompleteDraftException) as exc_info:
            validate_drafts(drafts, make_context(), TZ)
        assert exc_info.value.details["index"] == 1

    def test_invalid_duration_reports_index(self):
        with pytest.raises(InvalidDurationException) as exc_info:
            validate_drafts([draft(), draft(duration_minutes=0)], make_context(), TZ)
        assert exc_info.value.details["index"] == 1

    def test_missing_duration_without_course_default(self):
        with pytest.raises(InvalidDurationException):
            validate_drafts([draft()], make_context(session_duration_minutes=None), TZ)

    def test_missing_instructor(self):
        with pytest.raises(MissingInstructorException):
            validate_drafts([draft()], make_context(lead_instructor_id=None), TZ)

    def test_quota_exceeded(self):
        context = make_context(session_count=6, scheduled_sessions=5)

        with pytest.raises(QuotaExceededException) as exc_info:
            validate_drafts([draft(), draft()], context, TZ)
        assert exc_info.value.details == {"requested": 2, "pending": 1}

    def test_each_rule_runs_over_every_draft_before_the_next(self):
        # Draft 0 has a bad duration, draft 1 has no start time: the
        # completeness rule is reported first.
        drafts = [draft(duration_minutes=-5), draft(start_time=None)]

        with pytest.raises(IncompleteDraftException):
            validate_drafts(drafts, make_context(), TZ)

    def test_room_checked_before_quota(self):
        context = make_context(default_room_id=None, room_capacity=None, scheduled_sessions=6)

        with pytest.raises(RoomNotAssignedException):
            validate_drafts([draft()], context, TZ)
