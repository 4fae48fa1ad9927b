"""
Prometheus metrics for the studio scheduling engine.

Service timings come from the @measure_operation decorator; the domain
counters below track admission, planning and check-in outcomes.
"""

from threading import Lock
from time import monotonic
from typing import Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Private registry, separate from the prometheus_client default
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "studio_scheduler_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "studio_scheduler_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "studio_scheduler_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

booking_admissions_total = Counter(
    "studio_scheduler_booking_admissions_total",
    "Booking admission outcomes",
    ["outcome"],  # created | existing | full | race_resolved
    registry=REGISTRY,
)

sessions_scheduled_total = Counter(
    "studio_scheduler_sessions_scheduled_total",
    "Sessions created by the planner",
    registry=REGISTRY,
)

blackout_rejections_total = Counter(
    "studio_scheduler_blackout_rejections_total",
    "Candidate sessions rejected by the blackout resolver",
    ["reason"],
    registry=REGISTRY,
)

attendance_tokens_issued_total = Counter(
    "studio_scheduler_attendance_tokens_issued_total",
    "Attendance tokens issued",
    ["kind"],  # BOOKING | SESSION
    registry=REGISTRY,
)

check_ins_total = Counter(
    "studio_scheduler_check_ins_total",
    "Check-in attempts by result",
    ["result"],  # checked_in, already_checked_in, reverted, unchanged, or a token error reason
    registry=REGISTRY,
)

waitlist_events_total = Counter(
    "studio_scheduler_waitlist_events_total",
    "Waitlist changes by event",
    ["event"],  # joined | left | promoted | skipped
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Records scheduling metrics and renders the exposition payload."""

    _cache_lock: Lock = Lock()
    _cache_payload: Optional[bytes] = None
    _cache_ts: Optional[float] = None
    _cache_ttl_seconds: float = 1.0

    @staticmethod
    def _bump(counter: Counter, amount: float = 1, **labels: str) -> None:
        (counter.labels(**labels) if labels else counter).inc(amount)
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """
        Timing and outcome of one measured service call.

        Args:
            service: Service class name, e.g. 'BookingGuardService'
            operation: Name given to @measure_operation, e.g. 'book_session'
            duration: Wall time in seconds
            status: 'success' or 'error'
            error_type: Exception class name when the call raised
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()
        PrometheusMetrics._bump(
            service_operations_total, service=service, operation=operation, status=status
        )

    @staticmethod
    def inc_booking_admission(outcome: str) -> None:
        PrometheusMetrics._bump(booking_admissions_total, outcome=outcome)

    @staticmethod
    def inc_sessions_scheduled(count: int) -> None:
        if count > 0:
            PrometheusMetrics._bump(sessions_scheduled_total, count)

    @staticmethod
    def inc_blackout_rejection(reason: str) -> None:
        PrometheusMetrics._bump(blackout_rejections_total, reason=reason)

    @staticmethod
    def inc_token_issued(kind: str) -> None:
        PrometheusMetrics._bump(attendance_tokens_issued_total, kind=kind)

    @staticmethod
    def inc_check_in(result: str) -> None:
        PrometheusMetrics._bump(check_ins_total, result=result)

    @staticmethod
    def inc_waitlist_event(event: str) -> None:
        PrometheusMetrics._bump(waitlist_events_total, event=event)

    @staticmethod
    def get_metrics() -> bytes:
        """Text exposition of REGISTRY, rebuilt at most once a second between updates."""
        with PrometheusMetrics._cache_lock:
            payload = PrometheusMetrics._cache_payload
            built_at = PrometheusMetrics._cache_ts
            if payload is not None and built_at is not None:
                if monotonic() - built_at <= PrometheusMetrics._cache_ttl_seconds:
                    return payload
            payload = cast(bytes, generate_latest(REGISTRY))
            PrometheusMetrics._cache_payload = payload
            PrometheusMetrics._cache_ts = monotonic()
            return payload

    @staticmethod
    def get_content_type() -> str:
        return cast(str, CONTENT_TYPE_LATEST)

    @staticmethod
    def _invalidate_cache() -> None:
        with PrometheusMetrics._cache_lock:
            PrometheusMetrics._cache_payload = None
            PrometheusMetrics._cache_ts = None


prometheus_metrics = PrometheusMetrics()
