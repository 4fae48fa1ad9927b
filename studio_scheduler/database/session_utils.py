"""
Dialect checks and SQLite transaction hooks for the repositories.

Admission and planning lock their session/course row with
``SELECT ... FOR UPDATE``. SQLite has no row locks, so engines built for it
open every transaction with ``BEGIN IMMEDIATE``: the write lock is taken
before the first read, and two bookings or planning requests run one after
the other instead of both counting the same free seat.
"""

import logging

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import UnboundExecutionError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

ROW_LOCK_DIALECTS = frozenset({"postgresql", "mysql", "mariadb", "oracle", "mssql"})


def get_dialect_name(session: Session, default: str = "sqlite") -> str:
    """Name of the dialect the session is bound to, or ``default`` when unbound."""
    try:
        bind = session.get_bind()
    except UnboundExecutionError:
        logger.debug("Session has no bind, assuming %s", default)
        return default
    name = getattr(getattr(bind, "dialect", None), "name", None)
    return name if isinstance(name, str) and name else default


def supports_row_locks(session: Session) -> bool:
    """True when SELECT ... FOR UPDATE takes real row locks."""
    return get_dialect_name(session) in ROW_LOCK_DIALECTS


def install_sqlite_transaction_hooks(engine: Engine, begin: str = "BEGIN IMMEDIATE") -> None:
    """
    Let SQLAlchemy, not pysqlite, open SQLite transactions.

    pysqlite only emits BEGIN before the first write, so the reads of a
    check-then-insert would run outside the transaction. With its implicit
    handling turned off, every transaction starts with ``begin`` and
    SAVEPOINTs nest inside it.
    """

    @event.listens_for(engine, "connect")
    def _disable_implicit_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql(begin)
