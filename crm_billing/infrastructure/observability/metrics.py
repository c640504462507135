"""Prometheus metrics for schedules, installment payments and dispatch activity"""

from prometheus_client import Counter, Histogram

# Billing metrics
schedule_counter = Counter(
    "crm_schedule_generated_total",
    "Installment schedules generated",
    ["payment_method", "replaced"],
)

installment_status_counter = Counter(
    "crm_installment_status_total",
    "Installment status transitions",
    ["from_status", "to_status"],
)

dispatch_flag_counter = Counter(
    "crm_dispatch_flag_total",
    "Installments marked dispatched or undispatched",
    ["state"],  # dispatched | pending
)

# Store metrics
store_failures_counter = Counter(
    "crm_store_failures_total",
    "Requests aborted by an unexpected data store error",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_schedule(payment_method: str, replaced: bool) -> None:
    schedule_counter.labels(payment_method=payment_method, replaced=str(replaced).lower()).inc()


def record_status_change(from_status: str, to_status: str) -> None:
    installment_status_counter.labels(from_status=from_status, to_status=to_status).inc()


def record_dispatch_flag(is_dispatched: bool) -> None:
    dispatch_flag_counter.labels(state="dispatched" if is_dispatched else "pending").inc()
