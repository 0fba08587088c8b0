"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Booking metrics
booking_attempts = Counter(
    'booking_attempts_total',
    'Total booking attempts',
    ['kind', 'status']  # kind: single, monthly, legacy_monthly; status: success, conflict, insufficient_funds, error
)

booking_latency = Histogram(
    'booking_latency_seconds',
    'Booking transaction latency',
    ['kind'],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

# Wallet metrics
wallet_operations = Counter(
    'wallet_operations_total',
    'Wallet mutations by ledger kind',
    ['kind']  # credit, debit, refund
)

wallet_amount = Counter(
    'wallet_amount_coins_total',
    'Coins moved through wallets by ledger kind',
    ['kind']
)

# Cancellation / rejection metrics
cancellations = Counter(
    'cancellations_total',
    'Cancellation and rejection attempts',
    ['kind', 'result']  # kind: cancel, cancel_monthly, reject; result: success, refused
)

# Attendance metrics
attendance_actions = Counter(
    'attendance_actions_total',
    'Check-in / check-out actions',
    ['kind', 'action', 'result']  # kind: daily, monthly; action: checkin, checkout
)

# Sweep metrics
sweep_transitions = Counter(
    'sweep_transitions_total',
    'Booking status transitions applied by the reconciliation sweep',
    ['transition']
)

sweep_runs = Counter(
    'sweep_runs_total',
    'Reconciliation sweep runs',
    ['result']  # success, error
)

# Notification channel
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


# Convenience functions for instrumentation
def record_booking_attempt(kind: str, status: str):
    """Record booking attempt. Status: success, conflict, insufficient_funds, error"""
    booking_attempts.labels(kind=kind, status=status).inc()


def record_wallet_operation(kind: str, amount: int):
    """Record a wallet mutation and the coins it moved."""
    wallet_operations.labels(kind=kind).inc()
    wallet_amount.labels(kind=kind).inc(amount)


def record_cancellation(kind: str, success: bool):
    cancellations.labels(kind=kind, result="success" if success else "refused").inc()


def record_attendance(kind: str, action: str, success: bool):
    attendance_actions.labels(kind=kind, action=action, result="success" if success else "refused").inc()


def record_sweep_transition(transition: str, count: int = 1):
    if count:
        sweep_transitions.labels(transition=transition).inc(count)
