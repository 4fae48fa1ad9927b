# studio_scheduler/repositories/session_repository.py
"""Scheduled session repository."""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..models.class_session import ScheduledSession
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ScheduledSessionRepository(BaseRepository[ScheduledSession]):
    def __init__(self, db: Session):
        super().__init__(db, ScheduledSession)

    def get_for_booking(self, session_id: str) -> Optional[ScheduledSession]:
        """Session row locked so admission checks on it run one at a time."""
        return self.get_by_id(session_id, for_update=True)

    def create_sessions(self, rows: List[Dict[str, Any]]) -> List[ScheduledSession]:
        if not rows:
            return []
        return self.bulk_create(rows)

    def list_for_course(self, course_id: str) -> List[ScheduledSession]:
        return self.list_by(ScheduledSession.start_time, course_id=course_id)
