# studio_scheduler/services/booking_guard.py
"""
Capacity/booking guard.

Admission control for one booking against one session. The whole
check-then-act sequence runs in a single transaction that first locks the
session row (``FOR UPDATE``, or the database write lock on SQLite), so
concurrent requests for the same session are serialized:

1. An active booking for (session, client) already exists: return it.
2. Active bookings >= session capacity: SessionFullException.
3. Otherwise insert a CONFIRMED booking and issue its attendance token.

The partial unique index on (session_id, client_id) for non-cancelled rows
backs step 1. A unique violation from a lost race is resolved by returning
the booking that won.

Clients turned away can queue on the session's waitlist. Cancelling a
booking hands the released seat to the head of the queue in the same
transaction.
"""

import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.exceptions import NotFoundException, SessionFullException
from ..core.timezone_utils import utc_now
from ..models.booking import Booking, BookingStatus
from ..models.class_session import ScheduledSession
from ..models.waitlist import WaitlistStatus
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..schemas.booking import (
    BookingResponse,
    BookingResult,
    CancellationResult,
    WaitlistEntryResponse,
    WaitlistJoinResult,
    WaitlistLeaveResult,
)
from .attendance_token_service import AttendanceTokenService
from .base import BaseService

logger = logging.getLogger(__name__)


class BookingGuardService(BaseService):
    """Books, cancels, queues and reports occupancy of scheduled sessions."""

    def __init__(self, db: Session, token_service: Optional[AttendanceTokenService] = None):
        super().__init__(db)
        self.session_repository = RepositoryFactory.create_session_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.waitlist_repository = RepositoryFactory.create_waitlist_repository(db)
        self.token_service = token_service or AttendanceTokenService(db)

    @BaseService.measure_operation("book_session")
    def book(self, session_id: str, client_id: str) -> BookingResult:
        """
        Admit ``client_id`` to ``session_id``.

        Safe to retry: a repeated request returns the existing booking with
        ``created=False`` and does not take another seat.

        Raises:
            NotFoundException: unknown session
            SessionFullException: no seats left
        """
        self.log_operation("book_session", session_id=session_id, client_id=client_id)

        with self.transaction():
            session = self._locked_session(session_id)

            existing = self.booking_repository.find_active(session_id, client_id)
            if existing is not None:
                prometheus_metrics.inc_booking_admission("existing")
                return BookingResult(
                    booking=BookingResponse.model_validate(existing), created=False
                )

            occupied = self.booking_repository.count_active(session_id)
            if occupied >= session.capacity:
                prometheus_metrics.inc_booking_admission("full")
                self.logger.info(
                    "Session full, booking rejected",
                    extra={"session_id": session_id, "capacity": session.capacity},
                )
                raise SessionFullException(session_id, session.capacity)

            booking = self._insert_booking(session_id, client_id)
            if booking is None:
                winner = self.booking_repository.find_active(session_id, client_id)
                self.logger.info(
                    "Duplicate booking race resolved to existing booking",
                    extra={"session_id": session_id, "booking_id": winner.id},
                )
                prometheus_metrics.inc_booking_admission("race_resolved")
                return BookingResult(booking=BookingResponse.model_validate(winner), created=False)

            result = self._admitted(booking, session)

        prometheus_metrics.inc_booking_admission("created")
        return result

    @BaseService.measure_operation("cancel_booking")
    def cancel(self, booking_id: str) -> CancellationResult:
        """
        Release a booking's seat. Cancelling twice is a no-op.

        The row is kept with status CANCELLED; the client may book the same
        session again afterwards, which creates a new booking. The seat goes
        to the first PENDING waitlist entry, if any, before the commit.
        """
        self.log_operation("cancel_booking", booking_id=booking_id)
        with self.transaction():
            booking = self.booking_repository.get_by_id(booking_id, for_update=True)
            if booking is None:
                raise NotFoundException(f"Booking {booking_id} not found", code="BOOKING_NOT_FOUND")
            if booking.status == BookingStatus.CANCELLED.value:
                return CancellationResult(
                    booking=BookingResponse.model_validate(booking), cancelled=False
                )
            self.booking_repository.mark_cancelled(booking, utc_now())
            promoted = self._promote_from_waitlist(booking.session_id)
            return CancellationResult(
                booking=BookingResponse.model_validate(booking),
                cancelled=True,
                promoted=promoted,
            )

    def occupancy(self, session_id: str) -> int:
        """Seats currently taken (CONFIRMED + CHECKED_IN)."""
        return self.booking_repository.count_active(session_id)

    def occupancy_for(self, session_ids: Iterable[str]) -> Dict[str, int]:
        return self.booking_repository.get_occupancy(session_ids)

    def list_bookings(
        self, session_id: str, include_cancelled: bool = False
    ) -> List[BookingResponse]:
        """Roster of a session in booking order."""
        return [
            BookingResponse.model_validate(booking)
            for booking in self.booking_repository.list_for_session(session_id, include_cancelled)
        ]

    # Waitlist

    @BaseService.measure_operation("join_waitlist")
    def join_waitlist(self, session_id: str, client_id: str) -> WaitlistJoinResult:
        """
        Queue ``client_id`` at the back of the session's waitlist.

        Joining again while PENDING or PROMOTED returns the current entry
        unchanged. An entry that left earlier is reused and re-queued at the
        back.
        """
        self.log_operation("join_waitlist", session_id=session_id, client_id=client_id)
        with self.transaction():
            self._locked_session(session_id)
            entry = self.waitlist_repository.find_for_client(
                session_id, client_id, for_update=True
            )
            if entry is not None and entry.status != WaitlistStatus.CANCELLED.value:
                return WaitlistJoinResult(
                    entry=WaitlistEntryResponse.model_validate(entry),
                    joined=False,
                    waitlist_count=self.waitlist_repository.count_pending(session_id),
                )

            position = self.waitlist_repository.count_pending(session_id) + 1
            if entry is None:
                entry = self.waitlist_repository.create(
                    session_id=session_id,
                    client_id=client_id,
                    position=position,
                    status=WaitlistStatus.PENDING.value,
                )
            else:
                self.waitlist_repository.requeue(entry, position)
            waitlist_count = self.waitlist_repository.resequence(session_id)
            result = WaitlistJoinResult(
                entry=WaitlistEntryResponse.model_validate(entry),
                joined=True,
                waitlist_count=waitlist_count,
            )

        prometheus_metrics.inc_waitlist_event("joined")
        return result

    @BaseService.measure_operation("leave_waitlist")
    def leave_waitlist(self, session_id: str, client_id: str) -> WaitlistLeaveResult:
        """
        Take ``client_id`` off the waitlist and close the gap behind it.

        Leaving twice reports ``removed=True`` both times. A PROMOTED entry
        already holds a booking and is left alone (``removed=False``); that
        seat is released through ``cancel``.

        Raises:
            NotFoundException: the client never joined this waitlist
        """
        self.log_operation("leave_waitlist", session_id=session_id, client_id=client_id)
        with self.transaction():
            self._locked_session(session_id)
            entry = self.waitlist_repository.find_for_client(
                session_id, client_id, for_update=True
            )
            if entry is None:
                raise NotFoundException(
                    "Waitlist entry not found",
                    code="WAITLIST_ENTRY_NOT_FOUND",
                    details={"session_id": session_id, "client_id": client_id},
                )
            if entry.status != WaitlistStatus.PENDING.value:
                return WaitlistLeaveResult(
                    removed=entry.status == WaitlistStatus.CANCELLED.value,
                    waitlist_count=self.waitlist_repository.count_pending(session_id),
                )
            self.waitlist_repository.mark_cancelled(entry)
            waitlist_count = self.waitlist_repository.resequence(session_id)

        prometheus_metrics.inc_waitlist_event("left")
        return WaitlistLeaveResult(removed=True, waitlist_count=waitlist_count)

    def get_waitlist_entry(
        self, session_id: str, client_id: str
    ) -> Optional[WaitlistEntryResponse]:
        """The client's entry with its current position, or None."""
        entry = self.waitlist_repository.find_for_client(session_id, client_id)
        return WaitlistEntryResponse.model_validate(entry) if entry is not None else None

    def list_waitlist(self, session_id: str) -> List[WaitlistEntryResponse]:
        """PENDING entries, head of the queue first."""
        return [
            WaitlistEntryResponse.model_validate(entry)
            for entry in self.waitlist_repository.list_pending(session_id)
        ]

    # Internals

    def _locked_session(self, session_id: str) -> ScheduledSession:
        session = self.session_repository.get_for_booking(session_id)
        if session is None:
            raise NotFoundException(f"Session {session_id} not found", code="SESSION_NOT_FOUND")
        return session

    def _insert_booking(self, session_id: str, client_id: str) -> Optional[Booking]:
        """
        Insert a CONFIRMED booking inside a savepoint.

        Returns None when the unique index reports that another request
        already holds an active booking for the client.
        """
        try:
            with self.db.begin_nested():
                return self.booking_repository.create(
                    session_id=session_id,
                    client_id=client_id,
                    status=BookingStatus.CONFIRMED.value,
                )
        except IntegrityError:
            if self.booking_repository.find_active(session_id, client_id) is None:
                raise
            return None

    def _admitted(self, booking: Booking, session: ScheduledSession) -> BookingResult:
        token = self.token_service.issue_booking_token(booking, session)
        return BookingResult(
            booking=BookingResponse.model_validate(booking), created=True, token=token
        )

    def _promote_from_waitlist(self, session_id: str) -> Optional[BookingResult]:
        """
        Give a free seat to the first PENDING entry that can take it.

        Entries whose client already holds an active booking are skipped and
        marked CANCELLED. Runs inside the caller's transaction.
        """
        session = self._locked_session(session_id)
        promoted: Optional[BookingResult] = None
        while self.booking_repository.count_active(session_id) < session.capacity:
            entry = self.waitlist_repository.next_pending(session_id)
            if entry is None:
                break
            booking = None
            if self.booking_repository.find_active(session_id, entry.client_id) is None:
                booking = self._insert_booking(session_id, entry.client_id)
            if booking is None:
                self.waitlist_repository.mark_cancelled(entry)
                prometheus_metrics.inc_waitlist_event("skipped")
                continue

            self.waitlist_repository.mark_promoted(entry, booking.id, utc_now())
            promoted = self._admitted(booking, session)
            prometheus_metrics.inc_waitlist_event("promoted")
            self.logger.info(
                "Waitlist entry promoted to booking",
                extra={
                    "session_id": session_id,
                    "client_id": entry.client_id,
                    "booking_id": booking.id,
                },
            )
            break

        self.waitlist_repository.resequence(session_id)
        return promoted
