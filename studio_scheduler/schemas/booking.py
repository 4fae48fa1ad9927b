"""Booking, waitlist, attendance token and check-in schemas."""

from datetime import datetime
from typing import Optional

from ..models.booking import BookingStatus
from ..models.waitlist import WaitlistStatus
from .base import OrmResponseModel, StrictModel, StrictRequestModel


class BookingRequest(StrictRequestModel):
    session_id: str
    client_id: str


class BookingResponse(OrmResponseModel):
    id: str
    session_id: str
    client_id: str
    status: BookingStatus
    created_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    checked_in_at: Optional[datetime] = None


class AttendanceTokenResponse(StrictModel):
    """Token payload the UI renders as a QR image."""

    token: str
    expires_at: datetime
    qr_url: str
    kind: str
    session_id: str
    booking_id: Optional[str] = None


class BookingResult(StrictModel):
    """
    Outcome of an admission request.

    ``created`` is False when an existing active booking was returned.
    """

    booking: BookingResponse
    created: bool
    token: Optional[AttendanceTokenResponse] = None


class CancellationResult(StrictModel):
    """
    Outcome of a cancellation.

    ``promoted`` is the booking handed to the head of the waitlist with the
    released seat, if anyone was waiting.
    """

    booking: BookingResponse
    cancelled: bool
    promoted: Optional[BookingResult] = None


class WaitlistEntryResponse(OrmResponseModel):
    id: str
    session_id: str
    client_id: str
    position: int
    status: WaitlistStatus
    booking_id: Optional[str] = None
    created_at: Optional[datetime] = None
    promoted_at: Optional[datetime] = None


class WaitlistJoinResult(StrictModel):
    """``joined`` is False when the client was already queued or promoted."""

    entry: WaitlistEntryResponse
    joined: bool
    waitlist_count: int


class WaitlistLeaveResult(StrictModel):
    removed: bool
    waitlist_count: int


class CheckInResult(StrictModel):
    booking: BookingResponse
    changed: bool
