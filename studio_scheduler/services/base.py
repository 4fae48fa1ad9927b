# studio_scheduler/services/base.py
"""
Shared behaviour for scheduling services.

A service is handed a session by its caller and draws the transaction
boundary itself. Repositories below it only flush, so whatever a service
does inside ``transaction()`` lands in one commit or not at all.

Decorating a method with ``measure_operation`` times it, keeps per-class
stats in process (``get_metrics``) and reports the same timing to
Prometheus.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from functools import wraps
import logging
import time
from typing import Any, Callable, Dict, Iterator, Optional, TypeVar, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import ServiceException
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


@dataclass
class OperationStats:
    """Running timings for one operation of one service class."""

    count: int = 0
    success_count: int = 0
    total_time: float = 0.0
    min_time: float = float("inf")
    max_time: float = 0.0

    def add(self, elapsed: float, success: bool) -> None:
        self.count += 1
        self.total_time += elapsed
        self.min_time = min(self.min_time, elapsed)
        self.max_time = max(self.max_time, elapsed)
        if success:
            self.success_count += 1

    def summary(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "avg_time": self.total_time / self.count,
            "min_time": self.min_time,
            "max_time": self.max_time,
            "total_time": self.total_time,
            "success_rate": self.success_count / self.count,
            "success_count": self.success_count,
            "failure_count": self.count - self.success_count,
        }


class BaseService:
    """Base class for the planner, booking, attendance and availability services."""

    # service class name -> operation name -> stats
    _class_metrics: Dict[str, Dict[str, OperationStats]] = {}

    def __init__(self, db: Session):
        self.db = db
        self.logger = logging.getLogger(self.__class__.__name__)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Commit the work done in the block, or roll all of it back.

        Domain exceptions raised inside the block propagate unchanged after
        the rollback. Database failures surface as ServiceException.
        """
        try:
            yield self.db
        except SQLAlchemyError as exc:
            self.db.rollback()
            self.logger.error("Rolled back after database error: %s", exc)
            raise ServiceException(f"Database operation failed: {exc}") from exc
        except Exception as exc:
            self.db.rollback()
            self.logger.debug("Rolled back after %s", type(exc).__name__)
            raise
        else:
            try:
                self.db.commit()
            except SQLAlchemyError as exc:
                self.db.rollback()
                self.logger.error("Commit failed: %s", exc)
                raise ServiceException(f"Database operation failed: {exc}") from exc

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """
        Time a service method under ``operation_name``.

            @BaseService.measure_operation("book_session")
            def book(self, session_id, client_id):
                ...
        """

        def decorator(func: F) -> F:
            @wraps(func)
            def wrapper(self, *args, **kwargs):
                started = time.perf_counter()
                error_type: Optional[str] = None
                try:
                    return func(self, *args, **kwargs)
                except Exception as exc:
                    error_type = type(exc).__name__
                    raise
                finally:
                    self._finish_operation(
                        operation_name, time.perf_counter() - started, error_type
                    )

            wrapper._operation_name = operation_name  # type: ignore[attr-defined]
            return cast(F, wrapper)

        return decorator

    def _finish_operation(
        self, operation: str, elapsed: float, error_type: Optional[str]
    ) -> None:
        success = error_type is None
        self._record_metric(operation, elapsed, success)

        if elapsed > settings.slow_operation_threshold_seconds:
            self.logger.warning(
                "Slow operation: %s took %.2fs", operation, elapsed,
                extra={"operation": operation, "elapsed": elapsed},
            )

        try:
            prometheus_metrics.record_service_operation(
                service=self.__class__.__name__,
                operation=operation,
                duration=elapsed,
                status="success" if success else "error",
                error_type=error_type,
            )
        except Exception as metrics_error:
            logger.debug("Could not export metrics for %s: %s", operation, metrics_error)

    def log_operation(self, operation: str, **context: Any) -> None:
        """Info log line for ``operation`` with ``context`` as structured extras."""
        self.logger.info(f"Operation: {operation}", extra={"operation": operation, **context})

    def _record_metric(self, operation: str, elapsed: float, success: bool) -> None:
        per_class = BaseService._class_metrics.setdefault(self.__class__.__name__, {})
        per_class.setdefault(operation, OperationStats()).add(elapsed, success)

    def get_metrics(self) -> Dict[str, Any]:
        """Per-operation counts, timings and success rate for this service class."""
        per_class = BaseService._class_metrics.get(self.__class__.__name__, {})
        return {name: stats.summary() for name, stats in per_class.items() if stats.count}

    def reset_metrics(self) -> None:
        BaseService._class_metrics.pop(self.__class__.__name__, None)
        self.logger.info("Metrics reset for %s", self.__class__.__name__)
