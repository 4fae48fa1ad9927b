# studio_scheduler/services/attendance_token_service.py
"""
Attendance token issuing and check-in.

Per scope (one booking or one session) the lifecycle is
NO_TOKEN -> ACTIVE(token, expires_at) -> EXPIRED. Issuing again overwrites
the scope's row, so only the newest token resolves. Expiry is checked
lazily when a token is presented: a token is valid iff ``now < expires_at``.

Booking tokens are issued with the booking and expire a few hours after the
session starts. Session tokens are generated by the instructor on demand
and live for a short countdown; a client scanning one is checked in
through their active booking for that session.
"""

from datetime import datetime, timedelta
import logging
import secrets
import string
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import AttendanceTokenException, NotFoundException
from ..core.timezone_utils import ensure_utc, utc_now
from ..models.attendance_token import AttendanceToken, AttendanceTokenKind
from ..models.booking import ACTIVE_BOOKING_STATUSES, Booking, BookingStatus
from ..models.class_session import ScheduledSession
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..schemas.booking import AttendanceTokenResponse, BookingResponse, CheckInResult
from .base import BaseService

logger = logging.getLogger(__name__)

TOKEN_ALPHABET = string.ascii_uppercase + string.digits
BOOKING_TOKEN_LENGTH = 10
SESSION_TOKEN_RANDOM_LENGTH = 12


def generate_token(length: int, prefix: str = "") -> str:
    """Random upper-case alphanumeric token from the ``secrets`` CSPRNG."""
    return prefix + "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))


def normalize_token(raw: Optional[str]) -> str:
    return (raw or "").strip().upper()


def build_qr_url(token: str) -> str:
    return f"{settings.public_base_url}/api/qr/{token}"


def is_token_valid(expires_at: datetime, now: datetime) -> bool:
    return ensure_utc(now) < ensure_utc(expires_at)


class AttendanceTokenService(BaseService):
    """
    Issues attendance tokens and resolves them at check-in.

    ``clock`` returns the current time; tests inject a fixed one.
    """

    def __init__(self, db: Session, clock: Optional[Callable[[], datetime]] = None):
        super().__init__(db)
        self.clock = clock or utc_now
        self.token_repository = RepositoryFactory.create_attendance_token_repository(db)
        self.session_repository = RepositoryFactory.create_session_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)

    def now(self) -> datetime:
        return ensure_utc(self.clock())

    def _to_response(self, row: AttendanceToken) -> AttendanceTokenResponse:
        return AttendanceTokenResponse(
            token=row.token,
            expires_at=ensure_utc(row.expires_at),
            qr_url=build_qr_url(row.token),
            kind=row.kind,
            session_id=row.session_id,
            booking_id=row.booking_id,
        )

    # Issuing

    @BaseService.measure_operation("generate_session_token")
    def generate_session_token(
        self, session_id: str, instructor_id: Optional[str] = None
    ) -> AttendanceTokenResponse:
        """
        Mint a fresh check-in token for a session, replacing any live one.

        Always permitted while the session exists.
        """
        self.log_operation("generate_session_token", session_id=session_id)
        with self.transaction():
            session = self.session_repository.get_by_id(session_id)
            if session is None:
                raise NotFoundException(f"Session {session_id} not found", code="SESSION_NOT_FOUND")

            row = self.token_repository.replace_for_scope(
                AttendanceToken.session_scope(session_id),
                token=generate_token(SESSION_TOKEN_RANDOM_LENGTH, settings.checkin_token_prefix),
                expires_at=self.now() + timedelta(seconds=settings.checkin_token_ttl_seconds),
                kind=AttendanceTokenKind.SESSION.value,
                session_id=session_id,
                issued_by_instructor_id=instructor_id,
            )
            response = self._to_response(row)

        prometheus_metrics.inc_token_issued(AttendanceTokenKind.SESSION.value)
        return response

    def issue_booking_token(
        self, booking: Booking, session: ScheduledSession
    ) -> AttendanceTokenResponse:
        """
        Store the booking's token inside the caller's transaction.

        Expires ``booking_token_horizon_hours`` after the session starts.
        """
        row = self.token_repository.replace_for_scope(
            AttendanceToken.booking_scope(booking.id),
            token=generate_token(BOOKING_TOKEN_LENGTH),
            expires_at=ensure_utc(session.start_time)
            + timedelta(hours=settings.booking_token_horizon_hours),
            kind=AttendanceTokenKind.BOOKING.value,
            session_id=session.id,
            booking_id=booking.id,
        )
        prometheus_metrics.inc_token_issued(AttendanceTokenKind.BOOKING.value)
        return self._to_response(row)

    @BaseService.measure_operation("refresh_booking_token")
    def refresh_booking_token(self, booking_id: str) -> AttendanceTokenResponse:
        """Re-issue a booking token; the previous one stops resolving."""
        with self.transaction():
            booking = self.booking_repository.get_by_id(booking_id)
            if booking is None:
                raise NotFoundException(f"Booking {booking_id} not found", code="BOOKING_NOT_FOUND")
            if not booking.is_active:
                raise AttendanceTokenException("not_allowed", booking_id=booking_id)
            return self.issue_booking_token(booking, booking.session)

    def get_booking_token(self, booking_id: str) -> Optional[AttendanceTokenResponse]:
        """Current token of a booking, or None when it has none (or it expired)."""
        row = self.token_repository.get_by_scope(AttendanceToken.booking_scope(booking_id))
        if row is None or not is_token_valid(row.expires_at, self.now()):
            return None
        return self._to_response(row)

    # Verification

    def is_valid(self, token: str) -> bool:
        row = self.token_repository.get_by_token(normalize_token(token))
        return row is not None and is_token_valid(row.expires_at, self.now())

    def _resolve(self, token: str) -> AttendanceToken:
        cleaned = normalize_token(token)
        row = self.token_repository.get_by_token(cleaned) if cleaned else None
        if row is None:
            prometheus_metrics.inc_check_in("not_found")
            raise AttendanceTokenException("not_found")
        if not is_token_valid(row.expires_at, self.now()):
            prometheus_metrics.inc_check_in("expired")
            raise AttendanceTokenException("expired", expires_at=ensure_utc(row.expires_at).isoformat())
        return row

    @BaseService.measure_operation("check_in")
    def check_in(self, token: str, client_id: Optional[str] = None) -> CheckInResult:
        """
        Check a client in by scanning a token.

        Booking tokens identify the booking directly. Session tokens need the
        scanning ``client_id`` to find that client's active booking.

        Raises:
            AttendanceTokenException: not_found, expired, no_booking or not_allowed
        """
        self.log_operation("check_in", client_id=client_id)
        with self.transaction():
            row = self._resolve(token)

            if row.kind == AttendanceTokenKind.BOOKING.value:
                booking = self.booking_repository.get_by_id(row.booking_id, for_update=True)
            else:
                booking = (
                    self.booking_repository.find_active(row.session_id, client_id)
                    if client_id
                    else None
                )

            if booking is None:
                prometheus_metrics.inc_check_in("no_booking")
                raise AttendanceTokenException("no_booking", session_id=row.session_id)

            return self._set_attendance(booking, present=True)

    @BaseService.measure_operation("mark_attendance")
    def mark_attendance(self, booking_id: str, present: bool = True) -> CheckInResult:
        """Manual check-in (``present=True``) or its reversal back to CONFIRMED."""
        self.log_operation("mark_attendance", booking_id=booking_id, present=present)
        with self.transaction():
            booking = self.booking_repository.get_by_id(booking_id, for_update=True)
            if booking is None:
                raise NotFoundException(f"Booking {booking_id} not found", code="BOOKING_NOT_FOUND")
            return self._set_attendance(booking, present=present)

    def _set_attendance(self, booking: Booking, present: bool) -> CheckInResult:
        if booking.status not in ACTIVE_BOOKING_STATUSES:
            prometheus_metrics.inc_check_in("not_allowed")
            raise AttendanceTokenException(
                "not_allowed", booking_id=booking.id, status=booking.status
            )

        target = BookingStatus.CHECKED_IN if present else BookingStatus.CONFIRMED
        if booking.status == target.value:
            prometheus_metrics.inc_check_in("already_checked_in" if present else "unchanged")
            return CheckInResult(booking=BookingResponse.model_validate(booking), changed=False)

        if present:
            self.booking_repository.mark_checked_in(booking, self.now())
        else:
            self.booking_repository.mark_confirmed(booking)
        prometheus_metrics.inc_check_in("checked_in" if present else "reverted")
        return CheckInResult(booking=BookingResponse.model_validate(booking), changed=True)
