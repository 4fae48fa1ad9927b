# studio_scheduler/repositories/booking_repository.py
"""
Booking repository.

Only non-cancelled bookings (CONFIRMED, CHECKED_IN) occupy a seat. Every
query that counts or deduplicates bookings filters on those statuses.
"""

from datetime import datetime
import logging
from typing import Any, Dict, Iterable, List, Optional, cast

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models.booking import ACTIVE_BOOKING_STATUSES, Booking, BookingStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    def __init__(self, db: Session):
        super().__init__(db, Booking)

    def create(self, **kwargs: Any) -> Booking:
        """
        Insert a booking and flush.

        Integrity errors propagate untouched: the caller runs this inside a
        savepoint and treats a unique violation as a lost duplicate race.
        """
        booking = Booking(**kwargs)
        self.db.add(booking)
        self.db.flush()
        return booking

    def find_active(self, session_id: str, client_id: str) -> Optional[Booking]:
        result = (
            self.db.query(Booking)
            .filter(
                Booking.session_id == session_id,
                Booking.client_id == client_id,
                Booking.status.in_(ACTIVE_BOOKING_STATUSES),
            )
            .order_by(Booking.created_at.desc())
            .first()
        )
        return cast(Optional[Booking], result)

    def count_active(self, session_id: str) -> int:
        query = self.db.query(func.count(Booking.id)).filter(
            Booking.session_id == session_id,
            Booking.status.in_(ACTIVE_BOOKING_STATUSES),
        )
        return int(self._execute_scalar(query) or 0)

    def get_occupancy(self, session_ids: Iterable[str]) -> Dict[str, int]:
        """Active booking count per session id; ids with no bookings map to 0."""
        ids = list(dict.fromkeys(session_ids))
        if not ids:
            return {}
        rows = (
            self.db.query(Booking.session_id, func.count(Booking.id))
            .filter(
                Booking.session_id.in_(ids),
                Booking.status.in_(ACTIVE_BOOKING_STATUSES),
            )
            .group_by(Booking.session_id)
            .all()
        )
        occupancy = {session_id: 0 for session_id in ids}
        for session_id, total in rows:
            occupancy[session_id] = int(total)
        return occupancy

    def list_for_session(self, session_id: str, include_cancelled: bool = False) -> List[Booking]:
        query = self._build_query().filter(Booking.session_id == session_id)
        if not include_cancelled:
            query = query.filter(Booking.status.in_(ACTIVE_BOOKING_STATUSES))
        return self._execute_query(query.order_by(Booking.created_at))

    def mark_cancelled(self, booking: Booking, at: datetime) -> Booking:
        booking.status = BookingStatus.CANCELLED.value
        booking.cancelled_at = at
        self.db.flush()
        return booking

    def mark_checked_in(self, booking: Booking, at: datetime) -> Booking:
        booking.status = BookingStatus.CHECKED_IN.value
        booking.checked_in_at = at
        self.db.flush()
        return booking

    def mark_confirmed(self, booking: Booking) -> Booking:
        """Revert a check-in."""
        booking.status = BookingStatus.CONFIRMED.value
        booking.checked_in_at = None
        self.db.flush()
        return booking
