# studio_scheduler/services/blackout_resolver.py
"""
Blackout resolver.

Decides whether a candidate (room, instructor, start, end) is permissible.
Rules are checked in a fixed order and the first failure wins:

1. Room date blocks: absolute windows, half-open overlap test.
2. Room recurring blocks: weekly windows on the candidate's local weekday.
3. Instructor recurring blocks.
4. Instructor availability: an inclusion list. The candidate must fit
   inside one declared range for its weekday. An override week covering
   the day replaces the default weekly pattern entirely. An instructor who
   never declared a pattern (and has no covering override) is unrestricted.

Recurring rules and availability are wall-clock rules, so the candidate is
converted to studio local time and split at local midnight; each piece is
checked against the rules of its own weekday.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from ..core.timezone_utils import to_studio_local
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..schemas.availability import AvailabilitySnapshot, RecurringBlockData
from ..schemas.blackout import BlackoutCandidate, BlackoutReason, BlackoutResult
from ..utils.time_utils import MINUTES_PER_DAY, minutes_to_time_str, sunday_first_weekday
from .base import BaseService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DaySegment:
    """Part of a candidate that falls on one local calendar day."""

    day: date
    weekday: int
    start_minutes: int
    end_minutes: int

    def describe(self) -> Dict[str, str]:
        return {
            "date": self.day.isoformat(),
            "start": minutes_to_time_str(self.start_minutes),
            "end": minutes_to_time_str(self.end_minutes),
        }


def split_into_local_days(
    start: datetime, end: datetime, tz_name: Optional[str] = None
) -> List[DaySegment]:
    """Split [start, end) at studio-local midnights into per-day minute ranges."""
    local_start = to_studio_local(start, tz_name)
    local_end = to_studio_local(end, tz_name)
    segments: List[DaySegment] = []

    day = local_start.date()
    last_day = local_end.date()
    while day <= last_day:
        seg_start = local_start.hour * 60 + local_start.minute if day == local_start.date() else 0
        seg_end = local_end.hour * 60 + local_end.minute if day == last_day else MINUTES_PER_DAY
        if seg_end > seg_start:
            segments.append(DaySegment(day, sunday_first_weekday(day), seg_start, seg_end))
        day += timedelta(days=1)
    return segments


def _first_recurring_hit(
    blocks: Iterable[RecurringBlockData], segments: Sequence[DaySegment]
) -> Optional[Tuple[RecurringBlockData, DaySegment]]:
    for segment in segments:
        for block in blocks:
            if block.weekday != segment.weekday:
                continue
            if block.as_range().overlaps(segment.start_minutes, segment.end_minutes):
                return block, segment
    return None


def evaluate_blackout(
    candidate: BlackoutCandidate,
    snapshot: AvailabilitySnapshot,
    tz_name: Optional[str] = None,
) -> BlackoutResult:
    """Pure check of one candidate against a loaded availability snapshot."""
    for block in snapshot.room_date_blocks:
        if block.overlaps(candidate.start_time, candidate.end_time):
            return BlackoutResult.blocked(
                BlackoutReason.ROOM_DATE_BLOCKED,
                room_id=candidate.room_id,
                block_id=block.id,
                block_reason=block.reason,
            )

    segments = split_into_local_days(candidate.start_time, candidate.end_time, tz_name)

    hit = _first_recurring_hit(snapshot.room_recurring_blocks, segments)
    if hit:
        block, segment = hit
        return BlackoutResult.blocked(
            BlackoutReason.ROOM_RECURRING_BLOCKED,
            room_id=candidate.room_id,
            block_id=block.id,
            block_reason=block.reason,
            **segment.describe(),
        )

    hit = _first_recurring_hit(snapshot.instructor_recurring_blocks, segments)
    if hit:
        block, segment = hit
        return BlackoutResult.blocked(
            BlackoutReason.INSTRUCTOR_UNAVAILABLE,
            instructor_id=candidate.instructor_id,
            source="recurring_block",
            block_id=block.id,
            block_reason=block.reason,
            **segment.describe(),
        )

    for segment in segments:
        override = snapshot.override_for(segment.day)
        pattern = override.days if override is not None else snapshot.instructor_weekly
        if pattern is None:
            continue
        ranges = pattern.ranges_for(segment.weekday)
        if any(r.contains(segment.start_minutes, segment.end_minutes) for r in ranges):
            continue
        return BlackoutResult.blocked(
            BlackoutReason.INSTRUCTOR_UNAVAILABLE,
            instructor_id=candidate.instructor_id,
            source="override_week" if override is not None else "weekly_pattern",
            week_key=override.week_key if override is not None else None,
            **segment.describe(),
        )

    return BlackoutResult.ok()


class BlackoutResolverService(BaseService):
    """Loads availability data and runs the blackout rules."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.availability_repository = RepositoryFactory.create_availability_repository(db)

    def load_snapshot(
        self, room_id: str, instructor_id: str, start: datetime, end: datetime
    ) -> AvailabilitySnapshot:
        return self.availability_repository.load_snapshot(room_id, instructor_id, start, end)

    @BaseService.measure_operation("check_blackout")
    def check(
        self, room_id: str, instructor_id: str, start_time: datetime, end_time: datetime
    ) -> BlackoutResult:
        candidate = BlackoutCandidate(
            room_id=room_id,
            instructor_id=instructor_id,
            start_time=start_time,
            end_time=end_time,
        )
        snapshot = self.load_snapshot(
            room_id, instructor_id, candidate.start_time, candidate.end_time
        )
        return self._evaluate(candidate, snapshot)

    @BaseService.measure_operation("check_blackout_many")
    def check_many(self, candidates: Sequence[BlackoutCandidate]) -> List[BlackoutResult]:
        """
        Check several candidates, loading one snapshot per room/instructor pair.

        Results are returned in input order.
        """
        grouped: Dict[Tuple[str, str], List[BlackoutCandidate]] = {}
        for candidate in candidates:
            grouped.setdefault((candidate.room_id, candidate.instructor_id), []).append(candidate)

        snapshots: Dict[Tuple[str, str], AvailabilitySnapshot] = {}
        for (room_id, instructor_id), items in grouped.items():
            snapshots[(room_id, instructor_id)] = self.load_snapshot(
                room_id,
                instructor_id,
                min(item.start_time for item in items),
                max(item.end_time for item in items),
            )

        return [
            self._evaluate(candidate, snapshots[(candidate.room_id, candidate.instructor_id)])
            for candidate in candidates
        ]

    def _evaluate(
        self, candidate: BlackoutCandidate, snapshot: AvailabilitySnapshot
    ) -> BlackoutResult:
        result = evaluate_blackout(candidate, snapshot)
        if not result.allowed and result.reason is not None:
            self.logger.info(
                "Blackout rejected candidate",
                extra={
                    "room_id": candidate.room_id,
                    "instructor_id": candidate.instructor_id,
                    "reason": result.reason.value,
                },
            )
            prometheus_metrics.inc_blackout_rejection(result.reason.value)
        return result
