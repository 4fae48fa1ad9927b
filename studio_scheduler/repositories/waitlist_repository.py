# studio_scheduler/repositories/waitlist_repository.py
"""Session waitlist repository: queue order, renumbering and status changes."""

from datetime import datetime
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..models.waitlist import WaitlistEntry, WaitlistStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class WaitlistRepository(BaseRepository[WaitlistEntry]):
    def __init__(self, db: Session):
        super().__init__(db, WaitlistEntry)

    def find_for_client(
        self, session_id: str, client_id: str, *, for_update: bool = False
    ) -> Optional[WaitlistEntry]:
        query = self._build_query().filter(
            WaitlistEntry.session_id == session_id,
            WaitlistEntry.client_id == client_id,
        )
        if for_update:
            query = self._lock(query)
        with self._wrap_errors(f"find waitlist entry of {client_id}"):
            return query.first()

    def _pending_query(self, session_id: str):
        return (
            self._build_query()
            .filter(
                WaitlistEntry.session_id == session_id,
                WaitlistEntry.status == WaitlistStatus.PENDING.value,
            )
            .order_by(WaitlistEntry.position, WaitlistEntry.created_at, WaitlistEntry.id)
        )

    def list_pending(self, session_id: str) -> List[WaitlistEntry]:
        """PENDING entries of a session, head of the queue first."""
        return self._execute_query(self._pending_query(session_id))

    def next_pending(self, session_id: str) -> Optional[WaitlistEntry]:
        with self._wrap_errors(f"read head of waitlist {session_id}"):
            return self._pending_query(session_id).first()

    def count_pending(self, session_id: str) -> int:
        with self._wrap_errors(f"count waitlist {session_id}"):
            return self._pending_query(session_id).order_by(None).count()

    def resequence(self, session_id: str) -> int:
        """
        Renumber PENDING entries 1..n in queue order and return n.

        Gaps left by entries that left or were promoted close up; relative
        order never changes.
        """
        pending = self.list_pending(session_id)
        for position, entry in enumerate(pending, start=1):
            if entry.position != position:
                entry.position = position
        with self._wrap_errors(f"resequence waitlist {session_id}"):
            self.db.flush()
        return len(pending)

    def requeue(self, entry: WaitlistEntry, position: int) -> WaitlistEntry:
        """Put a CANCELLED entry back at ``position`` as PENDING."""
        entry.status = WaitlistStatus.PENDING.value
        entry.position = position
        entry.booking_id = None
        entry.promoted_at = None
        with self._wrap_errors(f"requeue waitlist entry {entry.id}"):
            self.db.flush()
        return entry

    def mark_cancelled(self, entry: WaitlistEntry) -> WaitlistEntry:
        entry.status = WaitlistStatus.CANCELLED.value
        with self._wrap_errors(f"cancel waitlist entry {entry.id}"):
            self.db.flush()
        return entry

    def mark_promoted(self, entry: WaitlistEntry, booking_id: str, at: datetime) -> WaitlistEntry:
        entry.status = WaitlistStatus.PROMOTED.value
        entry.booking_id = booking_id
        entry.promoted_at = at
        with self._wrap_errors(f"promote waitlist entry {entry.id}"):
            self.db.flush()
        return entry
