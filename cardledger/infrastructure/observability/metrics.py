"""Prometheus metrics for ledger operations, invoice payments and HTTP latency"""

from prometheus_client import Counter, Histogram

# Ledger metrics
ledger_operation_counter = Counter(
    "cardledger_ledger_operations_total",
    "Ledger-affecting operations",
    ["operation", "outcome"],  # committed | <error kind>
)

invoice_payment_counter = Counter(
    "cardledger_invoice_payments_total",
    "Invoice payments by resulting invoice state",
    ["state"],  # partially_paid | paid
)

carried_forward_counter = Counter(
    "cardledger_carried_forward_cents_total",
    "Overpayment credit carried to the next billing cycle, in cents",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_operation(operation: str, error: Exception | None = None) -> None:
    """Count an operation as committed or by the error kind that refused it"""
    outcome = "committed" if error is None else type(error).__name__
    ledger_operation_counter.labels(operation=operation, outcome=outcome).inc()


def record_invoice_payment(is_paid: bool, carried_forward_cents: int) -> None:
    """Record the state a payment left its invoice in and any credit carried forward"""
    invoice_payment_counter.labels(state="paid" if is_paid else "partially_paid").inc()
    if carried_forward_cents > 0:
        carried_forward_counter.inc(carried_forward_cents)
