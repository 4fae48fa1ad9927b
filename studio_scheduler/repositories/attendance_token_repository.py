# studio_scheduler/repositories/attendance_token_repository.py
"""Attendance token repository: one live row per scope key."""

from datetime import datetime
import logging
from typing import Optional, cast

from sqlalchemy.orm import Session

from ..models.attendance_token import AttendanceToken
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class AttendanceTokenRepository(BaseRepository[AttendanceToken]):
    def __init__(self, db: Session):
        super().__init__(db, AttendanceToken)

    def get_by_token(self, token: str) -> Optional[AttendanceToken]:
        return self.find_one_by(token=token)

    def get_by_scope(self, scope_key: str, *, for_update: bool = False) -> Optional[AttendanceToken]:
        query = self._build_query().filter(AttendanceToken.scope_key == scope_key)
        if for_update:
            query = self._lock(query)
        return cast(Optional[AttendanceToken], query.first())

    def replace_for_scope(
        self,
        scope_key: str,
        *,
        token: str,
        expires_at: datetime,
        kind: str,
        session_id: str,
        booking_id: Optional[str] = None,
        issued_by_instructor_id: Optional[str] = None,
    ) -> AttendanceToken:
        """
        Store ``token`` as the only live token for ``scope_key``.

        An existing row is overwritten in place, so the previous token
        value no longer resolves.
        """
        row = self.get_by_scope(scope_key, for_update=True)
        if row is None:
            row = AttendanceToken(scope_key=scope_key, kind=kind, session_id=session_id)
            self.db.add(row)
        row.token = token
        row.expires_at = expires_at
        row.kind = kind
        row.session_id = session_id
        row.booking_id = booking_id
        row.issued_by_instructor_id = issued_by_instructor_id
        self.db.flush()
        return row
