"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Slot reservation metrics
reservation_attempts = Counter(
    'slot_reservation_attempts_total',
    'Total slot reservation attempts',
    ['result']  # reserved, conflict, error
)

reservation_latency = Histogram(
    'slot_reservation_latency_seconds',
    'Slot reservation latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

slot_releases = Counter(
    'slot_releases_total',
    'Slots released back to available',
    ['reason']  # rollback, cancellation
)

# Ticketing metrics
tickets_issued = Counter(
    'tickets_issued_total',
    'Tickets issued',
    ['payment_type']
)

gate_scans = Counter(
    'gate_scans_total',
    'Gate scans by action and outcome',
    ['action', 'result']  # result: accepted or a rejection code
)

# Notification metrics
notification_attempts = Counter(
    'notification_attempts_total',
    'Notification send attempts',
    ['channel', 'status']  # sent, failed, duplicate
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)


def metrics_endpoint() -> Response:
    """
    Prometheus metrics endpoint.

    Usage:
        @app.get("/metrics")
        def metrics():
            return metrics_endpoint()
    """
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_reservation(result: str):
    """Record reservation attempt. Result: reserved, conflict, error"""
    reservation_attempts.labels(result=result).inc()


def record_slot_release(reason: str):
    slot_releases.labels(reason=reason).inc()


def record_ticket_issued(payment_type: str):
    tickets_issued.labels(payment_type=payment_type).inc()


def record_gate_scan(action: str, result: str):
    """Record gate scan. Result: accepted or the rejection code."""
    gate_scans.labels(action=action, result=result).inc()


def record_notification(channel: str, status: str):
    notification_attempts.labels(channel=channel, status=status).inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
