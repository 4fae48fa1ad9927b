"""Blackout resolver schemas."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import Field, field_validator, model_validator

from ..core.timezone_utils import ensure_utc
from .base import StrictModel


class BlackoutReason(str, Enum):
    ROOM_DATE_BLOCKED = "ROOM_DATE_BLOCKED"
    ROOM_RECURRING_BLOCKED = "ROOM_RECURRING_BLOCKED"
    INSTRUCTOR_UNAVAILABLE = "INSTRUCTOR_UNAVAILABLE"


class BlackoutCandidate(StrictModel):
    room_id: str
    instructor_id: str
    start_time: datetime
    end_time: datetime

    @field_validator("start_time", "end_time")
    @classmethod
    def normalize_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @model_validator(mode="after")
    def validate_order(self) -> "BlackoutCandidate":
        if self.start_time >= self.end_time:
            raise ValueError("End time must be after start time")
        return self


class BlackoutResult(StrictModel):
    """Pass/fail verdict; on failure ``reason`` says which rule fired."""

    allowed: bool
    reason: Optional[BlackoutReason] = None
    details: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def ok(cls) -> "BlackoutResult":
        return cls(allowed=True)

    @classmethod
    def blocked(cls, reason: BlackoutReason, **details: Any) -> "BlackoutResult":
        return cls(allowed=False, reason=reason, details=details)
