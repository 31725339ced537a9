"""
Prometheus metrics module for the booking engine.

Service operation timings come from ``@BaseService.measure_operation``;
booking-specific counters are recorded by the conflict guard, the slot
lock and the weekly maintenance job.
"""

from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Create a custom registry to avoid conflicts with default metrics
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "servicebook_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "servicebook_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "servicebook_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

booking_lock_events_total = Counter(
    "servicebook_booking_lock_events_total",
    "Slot lock acquire/release outcomes",
    ["action", "outcome"],
    registry=REGISTRY,
)

booking_attempts_total = Counter(
    "servicebook_booking_attempts_total",
    "Booking requests by outcome",
    ["outcome"],
    registry=REGISTRY,
)

maintenance_items_total = Counter(
    "servicebook_maintenance_items_total",
    "Weekly reset/sync items processed by step and outcome",
    ["step", "outcome"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Manages Prometheus metrics collection and exposure."""

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record service operation metrics from @measure_operation decorator.

        Args:
            service: Service name (e.g., 'BookingService')
            operation: Operation/method name (e.g., 'request_booking')
            duration: Operation duration in seconds
            status: Operation status ('success' or 'error')
            error_type: Type of error if status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def record_booking_lock(action: str, outcome: str) -> None:
        booking_lock_events_total.labels(action=action, outcome=outcome).inc()

    @staticmethod
    def record_booking_attempt(outcome: str) -> None:
        """outcome: created | unavailable | not_found | conflict_retry | timeout"""
        booking_attempts_total.labels(outcome=outcome).inc()

    @staticmethod
    def record_maintenance_item(step: str, outcome: str) -> None:
        maintenance_items_total.labels(step=step, outcome=outcome).inc()

    @staticmethod
    def get_metrics() -> bytes:
        """Generate Prometheus metrics in exposition format."""
        return generate_latest(REGISTRY)

    @staticmethod
    def get_content_type() -> str:
        return str(CONTENT_TYPE_LATEST)


prometheus_metrics = PrometheusMetrics()
