"""
Shared fixtures for the studio scheduling engine tests.

Uses an in-memory SQLite database; every test runs inside an outer
transaction that is rolled back afterwards, and the session joins it with
SAVEPOINTs so service-level commits and rollbacks stay inside the test.
"""

from datetime import datetime, timezone
import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("IS_TESTING", "true")
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("STUDIO_TIMEZONE", "Europe/Madrid")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from studio_scheduler.database import Base
from studio_scheduler.database.session_utils import install_sqlite_transaction_hooks

# Import models so Base.metadata is populated for create_all.
import studio_scheduler.models  # noqa: F401
from studio_scheduler.models import Course, Instructor, Room, ScheduledSession


@pytest.fixture(scope="session")
def _engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    install_sqlite_transaction_hooks(engine)

    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(_engine) -> Session:
    """Transactional session bound to the shared in-memory engine."""
    connection = _engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(
        bind=connection,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture
def room(db) -> Room:
    room = Room(name="Sala Norte", capacity=10)
    db.add(room)
    db.commit()
    return room


@pytest.fixture
def instructor(db) -> Instructor:
    instructor = Instructor(full_name="Lucia Ortega")
    db.add(instructor)
    db.commit()
    return instructor


@pytest.fixture
def course(db, room, instructor) -> Course:
    course = Course(
        name="Pilates Reformer",
        session_count=6,
        session_duration_minutes=50,
        lead_instructor_id=instructor.id,
        default_room_id=room.id,
        scheduled_sessions=0,
    )
    db.add(course)
    db.commit()
    return course


@pytest.fixture
def make_session(db, course, room, instructor):
    """Factory for scheduled sessions in the shared course."""

    def _make(
        capacity: int = 10,
        start: datetime = datetime(2024, 1, 8, 9, 0, tzinfo=timezone.utc),
        end: datetime = datetime(2024, 1, 8, 10, 0, tzinfo=timezone.utc),
    ) -> ScheduledSession:
        session = ScheduledSession(
            course_id=course.id,
            instructor_id=instructor.id,
            room_id=room.id,
            start_time=start,
            end_time=end,
            capacity=capacity,
        )
        db.add(session)
        db.commit()
        return session

    return _make
