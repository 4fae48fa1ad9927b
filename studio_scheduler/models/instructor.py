from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.sql import func
import ulid

from ..database import Base


class Instructor(Base):
    """Instructor profile as far as scheduling needs it."""

    __tablename__ = "instructors"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    full_name = Column(String(200), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self) -> str:
        return f"<Instructor {self.full_name}>"
