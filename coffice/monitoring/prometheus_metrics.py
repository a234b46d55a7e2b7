"""
Prometheus metrics module for Coffice.

Service timings are fed by the @measure_operation decorator; the remaining
counters track the invariants the reservation engine protects (lock
contention, promo redemption races, lifecycle transitions).
"""

from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Custom registry so test runs and multiple app instances never collide
REGISTRY = CollectorRegistry()

http_request_duration_seconds = Histogram(
    "coffice_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status_code"],
    registry=REGISTRY,
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

http_requests_total = Counter(
    "coffice_http_requests_total",
    "Total number of HTTP requests",
    ["method", "endpoint", "status_code"],
    registry=REGISTRY,
)

service_operation_duration_seconds = Histogram(
    "coffice_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "coffice_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "coffice_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

resource_lock_total = Counter(
    "coffice_resource_lock_total",
    "Per-resource lock operations by outcome",
    ["action", "outcome"],  # acquire|release, success|timeout|not_found|error
    registry=REGISTRY,
)

promo_redemptions_total = Counter(
    "coffice_promo_redemptions_total",
    "Promo code redemption attempts by outcome",
    ["outcome"],  # redeemed | exhausted | duplicate
    registry=REGISTRY,
)

reservation_transitions_total = Counter(
    "coffice_reservation_transitions_total",
    "Reservation lifecycle transitions",
    ["from_status", "to_status"],
    registry=REGISTRY,
)

credits_applied_total = Counter(
    "coffice_credits_applied_total",
    "Referral credit movements",
    ["direction"],  # consumed | restored | granted
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Thin facade over the module-level collectors."""

    @staticmethod
    def record_http_request(method: str, endpoint: str, duration: float, status_code: int) -> None:
        labels = {"method": method, "endpoint": endpoint, "status_code": str(status_code)}
        http_request_duration_seconds.labels(**labels).observe(duration)
        http_requests_total.labels(**labels).inc()

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
            service: Service name (e.g., 'ReservationService')
            operation: Operation/method name (e.g., 'create_reservation')
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
    def record_resource_lock(action: str, outcome: str) -> None:
        resource_lock_total.labels(action=action, outcome=outcome).inc()

    @staticmethod
    def record_promo_redemption(outcome: str) -> None:
        promo_redemptions_total.labels(outcome=outcome).inc()

    @staticmethod
    def record_reservation_transition(from_status: str, to_status: str) -> None:
        reservation_transitions_total.labels(from_status=from_status, to_status=to_status).inc()

    @staticmethod
    def inc_credits(direction: str, amount: int = 1) -> None:
        credits_applied_total.labels(direction=direction).inc(amount)

    @staticmethod
    def get_metrics() -> bytes:
        """Generate Prometheus metrics in exposition format."""
        return generate_latest(REGISTRY)

    @staticmethod
    def get_content_type() -> str:
        return CONTENT_TYPE_LATEST


prometheus_metrics = PrometheusMetrics()
