from datetime import datetime, timezone
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Query

from studio_scheduler.core.exceptions import (
    NotFoundException,
    RepositoryException,
    SessionFullException,
)
from studio_scheduler.database import with_db_retry
from studio_scheduler.models import Booking
from studio_scheduler.models.booking import BookingStatus
from studio_scheduler.services.attendance_token_service import AttendanceTokenService
from studio_scheduler.services.booking_guard import BookingGuardService

NOW = datetime(2024, 1, 8, 7, 0, tzinfo=timezone.utc)


@pytest.fixture
def guard(db):
    return BookingGuardService(db, token_service=AttendanceTokenService(db, clock=lambda: NOW))


class TestBook:
    def test_creates_booking_with_token(self, db, guard, make_session):
        session = make_session()

        result = guard.book(session.id, "client-a")

        assert result.created
        assert result.booking.status == BookingStatus.CONFIRMED
        assert result.token is not None
        assert result.token.booking_id == result.booking.id
        assert result.token.expires_at == datetime(2024, 1, 8, 15, 0, tzinfo=timezone.utc)
        assert result.token.qr_url.endswith(f"/api/qr/{result.token.token}")
        assert guard.occupancy(session.id) == 1

    def test_full_session_rejects_third_client(self, guard, make_session):
        session = make_session(capacity=2)
        guard.book(session.id, "client-a")
        guard.book(session.id, "client-b")

        with pytest.raises(SessionFullException) as exc_info:
            guard.book(session.id, "client-c")

        assert exc_info.value.details["capacity"] == 2
        assert guard.occupancy(session.id) == 2

    def test_repeat_request_returns_existing_booking(self, db, guard, make_session):
        session = make_session()

        first = guard.book(session.id, "client-a")
        second = guard.book(session.id, "client-a")

        assert second.created is False
        assert second.booking.id == first.booking.id
        assert second.token is None
        assert guard.occupancy(session.id) == 1
        assert db.query(Booking).count() == 1

    def test_repeat_request_on_full_session_still_returns_booking(self, guard, make_session):
        session = make_session(capacity=1)
        first = guard.book(session.id, "client-a")

        assert guard.book(session.id, "client-a").booking.id == first.booking.id

    def test_unknown_session(self, guard):
        with pytest.raises(NotFoundException) as exc_info:
            guard.book("missing", "client-a")
        assert exc_info.value.code == "SESSION_NOT_FOUND"

    def test_lost_race_resolves_to_winner(self, db, guard, make_session):
        session = make_session()
        winner = Booking(session_id=session.id, client_id="client-a")
        db.add(winner)
        db.commit()

        real_find_active = guard.booking_repository.find_active
        calls = []

        def stale_first_read(session_id, client_id):
            calls.append(client_id)
            if len(calls) == 1:
                return None
            return real_find_active(session_id, client_id)

        with patch.object(guard.booking_repository, "find_active", side_effect=stale_first_read):
            result = guard.book(session.id, "client-a")

        assert result.created is False
        assert result.booking.id == winner.id
        assert guard.occupancy(session.id) == 1


class TestCancel:
    def test_cancel_releases_seat(self, guard, make_session):
        session = make_session(capacity=1)
        booking = guard.book(session.id, "client-a").booking

        result = guard.cancel(booking.id)

        assert result.cancelled
        assert result.booking.status == BookingStatus.CANCELLED
        assert result.booking.cancelled_at is not None
        assert guard.occupancy(session.id) == 0
        assert guard.book(session.id, "client-b").created

    def test_cancel_is_idempotent(self, guard, make_session):
        booking = guard.book(make_session().id, "client-a").booking
        guard.cancel(booking.id)

        again = guard.cancel(booking.id)

        assert again.cancelled is False
        assert again.booking.status == BookingStatus.CANCELLED

    def test_client_can_book_again_after_cancelling(self, db, guard, make_session):
        session = make_session()
        first = guard.book(session.id, "client-a").booking
        guard.cancel(first.id)

        second = guard.book(session.id, "client-a")

        assert second.created
        assert second.booking.id != first.id
        assert db.query(Booking).filter(Booking.session_id == session.id).count() == 2
        assert guard.occupancy(session.id) == 1

    def test_unknown_booking(self, guard):
        with pytest.raises(NotFoundException):
            guard.cancel("missing")


def test_occupancy_for_many_sessions(guard, make_session):
    busy = make_session()
    empty = make_session()
    guard.book(busy.id, "client-a")
    guard.book(busy.id, "client-b")

    assert guard.occupancy_for([busy.id, empty.id]) == {busy.id: 2, empty.id: 0}


def test_list_bookings_hides_cancelled_by_default(guard, make_session):
    session = make_session()
    kept = guard.book(session.id, "client-a").booking
    dropped = guard.book(session.id, "client-b").booking
    guard.cancel(dropped.id)

    assert [b.id for b in guard.list_bookings(session.id)] == [kept.id]
    assert len(guard.list_bookings(session.id, include_cancelled=True)) == 2


class TestRetry:
    def test_transient_failure_inside_book_is_retried(self, db, guard, make_session):
        session = make_session()
        first = Query.first
        calls = []

        def flaky_first(query):
            calls.append(query)
            if len(calls) == 1:
                raise OperationalError("SELECT", {}, Exception("database is locked"))
            return first(query)

        with patch.object(Query, "first", flaky_first), patch(
            "studio_scheduler.database.time.sleep"
        ) as mock_sleep:
            result = with_db_retry("book_session", lambda: guard.book(session.id, "client-a"))

        assert result.created
        mock_sleep.assert_called_once()
        assert guard.occupancy(session.id) == 1

    def test_wrapped_permanent_failure_is_not_retried(self, db, guard, make_session):
        session = make_session()

        with patch.object(
            Query, "first", side_effect=OperationalError("SELECT", {}, Exception("no such table"))
        ), patch("studio_scheduler.database.time.sleep") as mock_sleep:
            with pytest.raises(RepositoryException):
                with_db_retry("book_session", lambda: guard.book(session.id, "client-a"))

        mock_sleep.assert_not_called()
