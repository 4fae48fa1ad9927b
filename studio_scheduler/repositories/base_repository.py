# studio_scheduler/repositories/base_repository.py
"""
Base repository for the studio scheduling engine.

Repositories add, flush and query; they never commit. The calling service
owns the transaction, so a failed flush here is rolled back by the
service's ``transaction()`` block, not by the repository.
"""

from contextlib import contextmanager
import logging
from typing import Any, Dict, Generic, Iterator, List, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.exceptions import RepositoryException
from ..database.session_utils import get_dialect_name, supports_row_locks

T = TypeVar("T")

logger = logging.getLogger(__name__)


class BaseRepository(Generic[T]):
    """
    Data access for one ORM model.

    Attributes:
        db: SQLAlchemy session owned by the calling service
        model: Mapped class this repository reads and writes
    """

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    @property
    def dialect_name(self) -> str:
        return get_dialect_name(self.db)

    @contextmanager
    def _wrap_errors(self, action: str) -> Iterator[None]:
        """Log and re-raise SQLAlchemy failures as RepositoryException."""
        try:
            yield
        except IntegrityError as exc:
            self.logger.error("Integrity error while trying to %s: %s", action, exc)
            raise RepositoryException(f"Integrity constraint violated: {exc.orig}") from exc
        except SQLAlchemyError as exc:
            self.logger.error("Database error while trying to %s: %s", action, exc)
            raise RepositoryException(f"Failed to {action}: {exc}") from exc

    # Reads

    def get_by_id(self, id: str, *, for_update: bool = False) -> Optional[T]:
        """
        Fetch one row by primary key.

        With ``for_update`` the row stays locked until the surrounding
        transaction ends. Nothing is locked on SQLite.
        """
        query = self._build_query().filter(self.model.id == id)  # type: ignore[attr-defined]
        if for_update:
            query = self._lock(query)
        with self._wrap_errors(f"load {self.model.__name__} {id}"):
            return query.first()

    def find_one_by(self, **criteria: Any) -> Optional[T]:
        with self._wrap_errors(f"find {self.model.__name__}"):
            return self._build_query().filter_by(**criteria).first()

    def list_by(self, *order_by: Any, **criteria: Any) -> List[T]:
        """Rows matching equality ``criteria``, in ``order_by`` order."""
        query = self._build_query().filter_by(**criteria)
        if order_by:
            query = query.order_by(*order_by)
        return self._execute_query(query)

    # Writes

    def create(self, **fields: Any) -> T:
        """Add one row and flush so its generated id is available."""
        entity = self.model(**fields)
        with self._wrap_errors(f"create {self.model.__name__}"):
            self.db.add(entity)
            self.db.flush()
        return entity

    def bulk_create(self, rows: List[Dict[str, Any]]) -> List[T]:
        """
        Add several rows with a single flush.

        Returns the instances in input order with primary keys populated.
        """
        entities = [self.model(**fields) for fields in rows]
        with self._wrap_errors(f"create {len(entities)} {self.model.__name__} rows"):
            self.db.add_all(entities)
            self.db.flush()
        return entities

    # Helpers for subclasses

    def _lock(self, query: Query) -> Query:
        """SELECT ... FOR UPDATE where the dialect has row locks."""
        if supports_row_locks(self.db):
            return query.with_for_update()
        return query

    def _build_query(self) -> Query:
        return self.db.query(self.model)

    def _execute_query(self, query: Query) -> List[T]:
        with self._wrap_errors(f"list {self.model.__name__}"):
            return query.all()

    def _execute_scalar(self, query: Query) -> Any:
        with self._wrap_errors(f"aggregate {self.model.__name__}"):
            return query.scalar()
