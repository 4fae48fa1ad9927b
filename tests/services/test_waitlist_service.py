from datetime import datetime, timezone

import pytest

from studio_scheduler.core.exceptions import NotFoundException
from studio_scheduler.models import Booking
from studio_scheduler.models.booking import BookingStatus
from studio_scheduler.models.waitlist import WaitlistStatus
from studio_scheduler.services.attendance_token_service import AttendanceTokenService
from studio_scheduler.services.booking_guard import BookingGuardService

NOW = datetime(2024, 1, 8, 7, 0, tzinfo=timezone.utc)


@pytest.fixture
def guard(db):
    return BookingGuardService(db, token_service=AttendanceTokenService(db, clock=lambda: NOW))


@pytest.fixture
def full_session(guard, make_session):
    session = make_session(capacity=1)
    guard.book(session.id, "client-a")
    return session


class TestJoin:
    def test_clients_queue_in_arrival_order(self, guard, full_session):
        first = guard.join_waitlist(full_session.id, "client-b")
        second = guard.join_waitlist(full_session.id, "client-c")

        assert first.joined and second.joined
        assert first.entry.position == 1
        assert second.entry.position == 2
        assert second.waitlist_count == 2
        assert [e.client_id for e in guard.list_waitlist(full_session.id)] == [
            "client-b",
            "client-c",
        ]

    def test_joining_twice_returns_existing_entry(self, guard, full_session):
        entry = guard.join_waitlist(full_session.id, "client-b").entry

        again = guard.join_waitlist(full_session.id, "client-b")

        assert again.joined is False
        assert again.entry.id == entry.id
        assert again.waitlist_count == 1

    def test_rejoining_after_leaving_goes_to_the_back(self, guard, full_session):
        original = guard.join_waitlist(full_session.id, "client-b").entry
        guard.join_waitlist(full_session.id, "client-c")
        guard.leave_waitlist(full_session.id, "client-b")

        back = guard.join_waitlist(full_session.id, "client-b")

        assert back.joined
        assert back.entry.id == original.id
        assert back.entry.position == 2
        assert guard.get_waitlist_entry(full_session.id, "client-c").position == 1

    def test_unknown_session(self, guard):
        with pytest.raises(NotFoundException):
            guard.join_waitlist("missing", "client-b")


class TestLeave:
    def test_leaving_resequences_the_queue(self, guard, full_session):
        for client_id in ("client-b", "client-c", "client-d"):
            guard.join_waitlist(full_session.id, client_id)

        result = guard.leave_waitlist(full_session.id, "client-b")

        assert result.removed
        assert result.waitlist_count == 2
        assert [(e.client_id, e.position) for e in guard.list_waitlist(full_session.id)] == [
            ("client-c", 1),
            ("client-d", 2),
        ]
        left = guard.get_waitlist_entry(full_session.id, "client-b")
        assert left.status == WaitlistStatus.CANCELLED

    def test_leaving_twice_is_harmless(self, guard, full_session):
        guard.join_waitlist(full_session.id, "client-b")
        guard.leave_waitlist(full_session.id, "client-b")

        again = guard.leave_waitlist(full_session.id, "client-b")

        assert again.removed
        assert again.waitlist_count == 0

    def test_client_never_queued(self, guard, full_session):
        with pytest.raises(NotFoundException) as exc_info:
            guard.leave_waitlist(full_session.id, "client-z")

        assert exc_info.value.code == "WAITLIST_ENTRY_NOT_FOUND"


class TestPromotion:
    def test_cancel_hands_seat_to_head_of_queue(self, guard, full_session):
        holder = guard.list_bookings(full_session.id)[0]
        guard.join_waitlist(full_session.id, "client-b")
        guard.join_waitlist(full_session.id, "client-c")

        result = guard.cancel(holder.id)

        assert result.cancelled
        assert result.promoted is not None
        assert result.promoted.booking.client_id == "client-b"
        assert result.promoted.booking.status == BookingStatus.CONFIRMED
        assert result.promoted.token is not None
        assert guard.occupancy(full_session.id) == 1

        promoted = guard.get_waitlist_entry(full_session.id, "client-b")
        assert promoted.status == WaitlistStatus.PROMOTED
        assert promoted.booking_id == result.promoted.booking.id
        assert [(e.client_id, e.position) for e in guard.list_waitlist(full_session.id)] == [
            ("client-c", 1)
        ]

    def test_promotion_skips_client_who_booked_directly(self, guard, make_session):
        session = make_session(capacity=2)
        holder = guard.book(session.id, "client-a").booking
        guard.join_waitlist(session.id, "client-b")
        guard.join_waitlist(session.id, "client-c")
        guard.book(session.id, "client-b")

        result = guard.cancel(holder.id)

        assert result.promoted.booking.client_id == "client-c"
        assert guard.get_waitlist_entry(session.id, "client-b").status == WaitlistStatus.CANCELLED
        assert guard.get_waitlist_entry(session.id, "client-c").status == WaitlistStatus.PROMOTED
        assert guard.list_waitlist(session.id) == []
        assert guard.occupancy(session.id) == 2

    def test_no_promotion_while_session_is_still_full(self, db, guard, make_session):
        session = make_session(capacity=1)
        holder = guard.book(session.id, "client-a").booking
        guard.join_waitlist(session.id, "client-b")
        # A seat handed out by staff outside the guard keeps the session full.
        db.add(Booking(session_id=session.id, client_id="client-z", status="CONFIRMED"))
        db.commit()

        result = guard.cancel(holder.id)

        assert result.cancelled
        assert result.promoted is None
        entry = guard.get_waitlist_entry(session.id, "client-b")
        assert entry.status == WaitlistStatus.PENDING
        assert entry.position == 1

    def test_no_promotion_without_queue(self, guard, full_session):
        holder = guard.list_bookings(full_session.id)[0]

        result = guard.cancel(holder.id)

        assert result.promoted is None
        assert guard.occupancy(full_session.id) == 0

    def test_repeated_cancel_does_not_promote_again(self, guard, full_session):
        holder = guard.list_bookings(full_session.id)[0]
        guard.join_waitlist(full_session.id, "client-b")
        guard.join_waitlist(full_session.id, "client-c")
        guard.cancel(holder.id)

        again = guard.cancel(holder.id)

        assert again.cancelled is False
        assert again.promoted is None
        waiting = guard.get_waitlist_entry(full_session.id, "client-c")
        assert waiting.status == WaitlistStatus.PENDING
