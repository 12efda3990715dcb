"""Prometheus metrics for settlement reports, merges and HTTP latency"""

from prometheus_client import Counter, Histogram

# Settlement metrics
settlements_counter = Counter(
    "splitledger_settlements_total",
    "Settlement suggestions emitted",
    ["currency"],
)

input_inconsistency_counter = Counter(
    "splitledger_input_inconsistency_total",
    "Bills rejected because their shares do not sum to the total",
)

# Merge metrics
merge_counter = Counter(
    "splitledger_merge_total",
    "Merge invocations",
    ["outcome"],  # merged | noop | conflict | failed
)

merged_bills_counter = Counter(
    "splitledger_merged_bills_total",
    "Merged bills created",
    ["currency"],
)

retired_bills_counter = Counter(
    "splitledger_retired_bills_total",
    "Original bills moved out of PENDING by a merge",
    ["currency", "status"],  # merged | completed
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_settlements(settlements) -> None:
    """Count emitted settlements per currency"""
    for settlement in settlements:
        settlements_counter.labels(currency=settlement.currency.value).inc()


def record_merge_plan(plan) -> None:
    """Record what a committed merge plan changed"""
    currency = plan.currency.value
    merged_bills_counter.labels(currency=currency).inc(len(plan.merged_bills))
    retired_bills_counter.labels(currency=currency, status="merged").inc(len(plan.retired))
    retired_bills_counter.labels(currency=currency, status="completed").inc(len(plan.completed))
