"""
Engine, session factory and declarative base for the scheduler tables.

``get_db`` hands out one session per unit of work. ``with_db_retry`` re-runs
a complete booking or planning call when the database aborted it for a
reason that goes away on its own (lock contention, serialization failure,
dropped connection).
"""

from __future__ import annotations

import logging
import random
import time
from typing import Any, Callable, Generator, Optional, TypeVar

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import DeclarativeMeta, Session, declarative_base, sessionmaker

from studio_scheduler.core.config import settings

from .session_utils import install_sqlite_transaction_hooks

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Lower-cased fragments of driver messages for aborts worth a second try.
TRANSIENT_ERROR_MARKERS = (
    "could not serialize access",
    "deadlock detected",
    "database is locked",
    "server closed the connection",
    "ssl connection has been closed unexpectedly",
)


def _engine_options(url: str) -> dict[str, Any]:
    if url.startswith("sqlite"):
        return {
            "future": True,
            "connect_args": {
                "check_same_thread": False,
                "timeout": settings.sqlite_lock_timeout_seconds,
            },
        }
    return {
        "future": True,
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 5,
        "pool_timeout": 5,
        "pool_recycle": 300,
    }


def build_engine(url: str, **overrides: Any) -> Engine:
    """
    Engine for ``url`` with the pool and locking setup this package expects.

    SQLite engines get ``BEGIN IMMEDIATE`` transactions, see
    ``session_utils.install_sqlite_transaction_hooks``.
    """
    options = _engine_options(url)
    options.update(overrides)
    built = create_engine(url, echo=settings.database_echo, **options)
    if built.dialect.name == "sqlite":
        install_sqlite_transaction_hooks(built)
    return built


engine: Engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

Base: DeclarativeMeta = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Yield a session; commit when the caller finishes cleanly, roll back otherwise."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def transient_cause(exc: BaseException) -> Optional[OperationalError]:
    """
    The transient ``OperationalError`` behind ``exc``, if there is one.

    Repositories and services re-raise driver errors as their own
    exceptions, so the chain of causes is searched, not just ``exc``.
    """
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, OperationalError):
            message = str(current).lower()
            if any(marker in message for marker in TRANSIENT_ERROR_MARKERS):
                return current
        current = current.__cause__ or current.__context__
    return None


def is_transient_error(exc: BaseException) -> bool:
    return transient_cause(exc) is not None


def with_db_retry(op_name: str, func: Callable[[], T], *, max_attempts: int = 3) -> T:
    """
    Call ``func`` until it succeeds or a non-transient error occurs.

    ``func`` runs a whole transaction on its own, so a retry starts from a
    clean slate. Backoff doubles from 100ms with a little jitter.
    """
    for attempt in range(1, max_attempts + 1):
        try:
            return func()
        except Exception as exc:
            if attempt == max_attempts or not is_transient_error(exc):
                raise
            delay = 0.1 * 2 ** (attempt - 1) + random.uniform(0, 0.05 * attempt)
            logger.warning(
                "Retrying %s after transient database error",
                op_name,
                extra={"event": "db_retry", "op": op_name, "attempt": attempt, "delay": delay},
            )
            time.sleep(delay)
    raise RuntimeError(f"{op_name}: max_attempts must be at least 1")


__all__ = [
    "Base",
    "SessionLocal",
    "build_engine",
    "engine",
    "get_db",
    "is_transient_error",
    "transient_cause",
    "with_db_retry",
]
