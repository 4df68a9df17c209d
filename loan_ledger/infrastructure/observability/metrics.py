"""Prometheus metrics for monitoring loan operations, fund movement and failures"""

from prometheus_client import Counter, Histogram

# Ledger operation metrics
operation_counter = Counter(
    "ledger_operation_total",
    "Total ledger operations by outcome",
    ["operation", "outcome"],  # outcome: ok | <error code> | INTERNAL_ERROR
)

operation_latency_histogram = Histogram(
    "ledger_operation_duration_seconds",
    "Time spent inside a ledger operation",
    ["operation"],
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0],
)

# Fund movement
transferred_cents_counter = Counter(
    "ledger_transferred_cents_total",
    "Cents moved between accounts by loan operations",
    ["operation"],  # approve_loan | repay_loan
)

rollback_failure_counter = Counter(
    "ledger_rollback_failures_total",
    "Transfers whose reversal failed and need manual repair",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_operation(operation: str, outcome: str, duration_seconds: float) -> None:
    """Record the outcome of one ledger operation"""
    operation_counter.labels(operation=operation, outcome=outcome).inc()
    operation_latency_histogram.labels(operation=operation).observe(duration_seconds)

    if outcome == "TRANSFER_ROLLBACK_FAILED":
        rollback_failure_counter.inc()


def record_transfer(operation: str, amount_cents: int) -> None:
    transferred_cents_counter.labels(operation=operation).inc(amount_cents)
