"""
Prometheus metrics for issuance and redemption.
Exposed at the /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Issuance metrics
issuance_attempts = Counter(
    'ticket_issuance_attempts_total',
    'Ticket purchase attempts',
    ['outcome']  # issued, or an error code such as CAPACITY_EXCEEDED
)

issuance_latency = Histogram(
    'ticket_issuance_latency_seconds',
    'End-to-end purchase latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 5.0]
)

promo_consumptions = Counter(
    'promo_code_consumptions_total',
    'Promo usage slots consumed by committed purchases'
)

holds_released = Counter(
    'capacity_holds_released_total',
    'Capacity holds returned to inventory',
    ['reason']  # failed, expired
)

# Redemption metrics
scan_results = Counter(
    'gate_scans_total',
    'Gate scan outcomes',
    ['result', 'reason']  # result: admitted/already_used/invalid
)

scan_latency = Histogram(
    'gate_scan_latency_seconds',
    'Redemption latency',
    buckets=[0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1]
)

gate_access_checks = Counter(
    'gate_access_checks_total',
    'Scanner access code checks',
    ['result']  # verified, or a rejection reason
)

redis_errors = Counter(
    'redis_errors_total',
    'Redis operations that failed and fell back to local state',
    ['operation']
)


def metrics_endpoint() -> Response:
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_issuance(outcome: str):
    issuance_attempts.labels(outcome=outcome).inc()


def record_scan(result: str, reason: str):
    scan_results.labels(result=result, reason=reason).inc()


def record_hold_release(reason: str):
    holds_released.labels(reason=reason).inc()


def record_gate_access(result: str):
    gate_access_checks.labels(result=result).inc()
