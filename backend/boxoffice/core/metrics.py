"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Hold metrics
hold_attempts = Counter(
    'hold_attempts_total',
    'Total seat hold attempts',
    ['result']  # created, replayed, unavailable
)

hold_releases = Counter(
    'hold_releases_total',
    'Hold release calls',
    ['result']  # released, noop
)

hold_extensions = Counter(
    'hold_extensions_total',
    'Hold extension attempts',
    ['result']  # extended, expired
)

holds_expired = Counter(
    'holds_expired_total',
    'Holds expired and returned to available',
    ['trigger']  # sweep, lazy
)

# Finalize metrics
finalize_attempts = Counter(
    'finalize_attempts_total',
    'Booking finalize attempts',
    ['result']  # success, expired, inconsistent
)

# Availability store metrics
seat_transitions = Counter(
    'seat_transitions_total',
    'Seat status compare-and-swap outcomes',
    ['transition', 'result']  # e.g. available->held, ok/conflict
)

operation_latency = Histogram(
    'reservation_operation_latency_seconds',
    'Latency of core reservation operations',
    ['operation'],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

# HTTP metrics
http_requests = Counter(
    'http_requests_total',
    'HTTP requests by route template and status',
    ['method', 'route', 'status_code']
)

http_request_duration = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration',
    ['method', 'route'],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)

redis_connection_errors = Counter(
    'redis_connection_errors_total',
    'Redis connection errors'
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_hold_attempt(result: str):
    """Record hold attempt. Result: created, replayed, unavailable"""
    hold_attempts.labels(result=result).inc()


def record_hold_release(released: bool):
    hold_releases.labels(result="released" if released else "noop").inc()


def record_hold_extension(result: str):
    hold_extensions.labels(result=result).inc()


def record_holds_expired(trigger: str, count: int = 1):
    """Record expired holds. Trigger: sweep, lazy"""
    if count:
        holds_expired.labels(trigger=trigger).inc(count)


def record_finalize_attempt(result: str):
    """Record finalize attempt. Result: success, expired, inconsistent"""
    finalize_attempts.labels(result=result).inc()


def record_seat_transition(from_status: str, to_status: str, ok: bool):
    seat_transitions.labels(
        transition=f"{from_status}->{to_status}",
        result="ok" if ok else "conflict",
    ).inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()


def record_request(method: str, route: str, status_code: int, duration_seconds: float):
    """Record a finished HTTP request against its route template, not the raw path."""
    http_requests.labels(method=method, route=route, status_code=str(status_code)).inc()
    http_request_duration.labels(method=method, route=route).observe(duration_seconds)
