# studio_scheduler/services/session_planner.py
"""
Session planner.

Turns a course plus a scheduling request into concrete sessions while
respecting the course's pending quota.

Drafts never live inside the engine. ``build_drafts`` seeds them from
defaults, ``apply_draft_edit`` returns an edited copy, and the caller sends
the drafts back on every call. A field the user edited keeps its value when
defaults change later (the ``*_edited`` flags).
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
import logging
from typing import Any, List, Optional, Sequence, Union

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import (
    BlackoutConflictException,
    CourseFullyScheduledException,
    IncompleteDraftException,
    InvalidDurationException,
    MissingInstructorException,
    NotFoundException,
    QuotaExceededException,
    RoomNotAssignedException,
    ValidationException,
)
from ..core.timezone_utils import combine_local
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..schemas.blackout import BlackoutCandidate
from ..schemas.scheduling import (
    CoursePlanningContext,
    DraftField,
    DraftSession,
    Frequency,
    RecurringPlanRequest,
    ScheduledSessionResponse,
    ScheduleRequest,
    ScheduleResult,
    SinglePlanRequest,
)
from ..utils.time_utils import string_to_time
from .base import BaseService
from .blackout_resolver import BlackoutResolverService
from .recurring_dates import compute_recurring_dates

logger = logging.getLogger(__name__)

PlanRequest = Union[RecurringPlanRequest, SinglePlanRequest]


@dataclass(frozen=True)
class ResolvedDraft:
    """A validated draft with absolute UTC times and a concrete instructor."""

    index: int
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    instructor_id: str


# Draft construction


def _seed(
    previous: Optional[DraftSession],
    *,
    session_date,
    start_time,
    duration_minutes: Optional[int],
    instructor_id: Optional[str],
) -> DraftSession:
    """New draft from defaults, keeping every field the user already edited."""
    if previous is None:
        return DraftSession(
            session_date=session_date,
            start_time=start_time,
            duration_minutes=duration_minutes,
            instructor_id=instructor_id,
        )
    return DraftSession(
        session_date=session_date,
        start_time=previous.start_time if previous.start_time_edited else start_time,
        duration_minutes=(
            previous.duration_minutes if previous.duration_edited else duration_minutes
        ),
        instructor_id=previous.instructor_id if previous.instructor_edited else instructor_id,
        start_time_edited=previous.start_time_edited,
        duration_edited=previous.duration_edited,
        instructor_edited=previous.instructor_edited,
    )


def build_drafts(
    frequency: Frequency,
    request: PlanRequest,
    context: CoursePlanningContext,
    previous: Sequence[DraftSession] = (),
) -> List[DraftSession]:
    """
    Seed drafts for a planning request.

    Recurring requests produce ``min(count, pending)`` drafts, one per
    generated date. A single request produces one draft. Both produce none
    when the course has nothing pending. ``previous`` is matched by index.
    """
    pending = context.pending_sessions
    if pending == 0:
        return []

    duration = (
        request.duration_minutes
        if request.duration_minutes is not None
        else context.session_duration_minutes
    )
    instructor_id = request.instructor_id or context.lead_instructor_id

    if frequency == Frequency.ONCE:
        if not isinstance(request, SinglePlanRequest):
            raise ValidationException("A single session needs a date", code="INVALID_PLAN_REQUEST")
        return [
            _seed(
                previous[0] if previous else None,
                session_date=request.session_date,
                start_time=request.start_time,
                duration_minutes=duration,
                instructor_id=instructor_id,
            )
        ]

    if not isinstance(request, RecurringPlanRequest):
        raise ValidationException(
            "Recurring sessions need a start date and weekdays", code="INVALID_PLAN_REQUEST"
        )

    dates = compute_recurring_dates(
        request.start_date, request.weekdays, min(request.count, pending)
    )
    return [
        _seed(
            previous[index] if index < len(previous) else None,
            session_date=day,
            start_time=request.start_time,
            duration_minutes=duration,
            instructor_id=instructor_id,
        )
        for index, day in enumerate(dates)
    ]


def apply_draft_edit(
    drafts: Sequence[DraftSession], index: int, field: DraftField, value: Any
) -> List[DraftSession]:
    """
    Return a copy of ``drafts`` with one field of one draft edited.

    The edited field becomes sticky. A duration that is not a positive
    number leaves the previous duration in place (but still marks it
    edited). An empty instructor clears the override so the course lead is
    used.
    """
    if not 0 <= index < len(drafts):
        raise ValidationException(
            f"There is no session {index + 1} to edit",
            code="DRAFT_INDEX_OUT_OF_RANGE",
            details={"index": index},
        )

    draft = drafts[index]
    if field == DraftField.START_TIME:
        start_time = string_to_time(value) if isinstance(value, str) else value
        edited = draft.model_copy(update={"start_time": start_time, "start_time_edited": True})
    elif field == DraftField.DURATION:
        try:
            minutes = int(value)
        except (TypeError, ValueError):
            minutes = 0
        duration = minutes if minutes > 0 else draft.duration_minutes
        edited = draft.model_copy(update={"duration_minutes": duration, "duration_edited": True})
    else:
        instructor_id = value.strip() if isinstance(value, str) else value
        edited = draft.model_copy(
            update={"instructor_id": instructor_id or None, "instructor_edited": True}
        )

    result = list(drafts)
    result[index] = edited
    return result


# Validation


def validate_drafts(
    drafts: Sequence[DraftSession],
    context: CoursePlanningContext,
    tz_name: Optional[str] = None,
) -> List[ResolvedDraft]:
    """
    Validate drafts against the course and resolve them to concrete times.

    Checks run in this order and stop at the first failure: default room,
    pending quota left, dates and start times, durations, instructors,
    number of drafts against the quota. Each per-draft rule is checked for
    every draft before the next rule starts.
    """
    if not context.default_room_id or context.room_capacity is None:
        raise RoomNotAssignedException(context.course_id)
    if context.room_capacity <= 0:
        raise RoomNotAssignedException(context.course_id, reason="invalid_capacity")

    pending = context.pending_sessions
    if pending <= 0:
        raise CourseFullyScheduledException(context.course_id)

    if not drafts:
        raise ValidationException(
            "Configure at least one session to schedule",
            code="NO_DRAFTS",
            details={"course_id": context.course_id},
        )

    for index, draft in enumerate(drafts):
        if draft.session_date is None or draft.start_time is None:
            raise IncompleteDraftException(index)

    durations: List[int] = []
    for index, draft in enumerate(drafts):
        duration = (
            draft.duration_minutes
            if draft.duration_minutes is not None
            else context.session_duration_minutes
        )
        if duration is None or duration <= 0:
            raise InvalidDurationException(index, duration)
        durations.append(duration)

    instructors: List[str] = []
    for index, draft in enumerate(drafts):
        instructor_id = draft.instructor_id or context.lead_instructor_id
        if not instructor_id:
            raise MissingInstructorException(index)
        instructors.append(instructor_id)

    if len(drafts) > pending:
        raise QuotaExceededException(requested=len(drafts), pending=pending)

    resolved: List[ResolvedDraft] = []
    for index, draft in enumerate(drafts):
        assert draft.session_date is not None and draft.start_time is not None
        start = combine_local(draft.session_date, draft.start_time, tz_name)
        resolved.append(
            ResolvedDraft(
                index=index,
                start_time=start,
                end_time=start + timedelta(minutes=durations[index]),
                duration_minutes=durations[index],
                instructor_id=instructors[index],
            )
        )
    return resolved


class SessionPlannerService(BaseService):
    """Plans and commits sessions for a course."""

    def __init__(self, db: Session, blackout_resolver: Optional[BlackoutResolverService] = None):
        super().__init__(db)
        self.course_repository = RepositoryFactory.create_course_repository(db)
        self.session_repository = RepositoryFactory.create_session_repository(db)
        self.blackout_resolver = blackout_resolver or BlackoutResolverService(db)

    def get_planning_context(self, course_id: str) -> CoursePlanningContext:
        course = self.course_repository.get_by_id(course_id)
        if course is None:
            raise NotFoundException(f"Course {course_id} not found", code="COURSE_NOT_FOUND")
        return CoursePlanningContext.from_course(course)

    @BaseService.measure_operation("plan_drafts")
    def plan_drafts(
        self,
        course_id: str,
        frequency: Frequency,
        request: PlanRequest,
        previous: Sequence[DraftSession] = (),
    ) -> List[DraftSession]:
        """Seed drafts for a course as it currently stands (read-only)."""
        return build_drafts(frequency, request, self.get_planning_context(course_id), previous)

    def list_sessions(self, course_id: str) -> List[ScheduledSessionResponse]:
        """Scheduled sessions of a course, earliest first."""
        return [
            ScheduledSessionResponse.model_validate(session)
            for session in self.session_repository.list_for_course(course_id)
        ]

    @BaseService.measure_operation("schedule_sessions")
    def schedule_sessions(self, request: ScheduleRequest) -> ScheduleResult:
        """
        Validate the drafts and create the sessions in one transaction.

        The course row is locked first, so the pending quota seen by the
        validation is the one the counter increment applies to.

        Raises:
            NotFoundException: unknown course
            RoomNotAssignedException, CourseFullyScheduledException,
            IncompleteDraftException, InvalidDurationException,
            MissingInstructorException, QuotaExceededException: validation
            BlackoutConflictException: a draft hits a blackout
        """
        self.log_operation(
            "schedule_sessions",
            course_id=request.course_id,
            frequency=request.frequency.value,
            drafts=len(request.occurrences),
        )
        if request.frequency == Frequency.ONCE and len(request.occurrences) > 1:
            raise ValidationException(
                "A single session request takes exactly one draft",
                code="INVALID_PLAN_REQUEST",
                details={"drafts": len(request.occurrences)},
            )

        with self.transaction():
            course = self.course_repository.get_for_planning(request.course_id)
            if course is None:
                raise NotFoundException(
                    f"Course {request.course_id} not found", code="COURSE_NOT_FOUND"
                )

            context = CoursePlanningContext.from_course(course)
            resolved = validate_drafts(request.occurrences, context)
            assert context.default_room_id is not None and context.room_capacity is not None

            if settings.enforce_blackouts_on_schedule:
                self._enforce_blackouts(resolved, context.default_room_id)

            sessions = self.session_repository.create_sessions(
                [
                    {
                        "course_id": course.id,
                        "instructor_id": draft.instructor_id,
                        "room_id": context.default_room_id,
                        "start_time": draft.start_time,
                        "end_time": draft.end_time,
                        "capacity": context.room_capacity,
                    }
                    for draft in resolved
                ]
            )
            scheduled_total = self.course_repository.increment_scheduled_sessions(
                course, len(sessions)
            )
            result = ScheduleResult(
                created=len(sessions),
                scheduled_total=scheduled_total,
                pending_remaining=max((course.session_count or 0) - scheduled_total, 0),
                sessions=[ScheduledSessionResponse.model_validate(s) for s in sessions],
            )

        prometheus_metrics.inc_sessions_scheduled(result.created)
        self.logger.info(
            f"Scheduled {result.created} sessions for course {request.course_id}",
            extra={"course_id": request.course_id, "scheduled_total": result.scheduled_total},
        )
        return result

    def _enforce_blackouts(self, resolved: Sequence[ResolvedDraft], room_id: str) -> None:
        candidates = [
            BlackoutCandidate(
                room_id=room_id,
                instructor_id=draft.instructor_id,
                start_time=draft.start_time,
                end_time=draft.end_time,
            )
            for draft in resolved
        ]
        results = self.blackout_resolver.check_many(candidates)
        for draft, outcome in zip(resolved, results):
            if not outcome.allowed and outcome.reason is not None:
                raise BlackoutConflictException(
                    outcome.reason.value, index=draft.index, **outcome.details
                )
