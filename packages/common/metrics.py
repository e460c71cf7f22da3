"""
Prometheus metrics shared by the API and the worker
"""
from prometheus_client import Counter, Histogram

categorization_total = Counter(
    "categorization_total",
    "Categorization results by winning waterfall stage",
    ["method"],
)

classifier_calls_total = Counter(
    "classifier_calls_total",
    "External classifier calls by outcome",
    ["outcome"],  # success, rejected, unparseable, timeout, error, unavailable
)

classifier_latency_seconds = Histogram(
    "classifier_latency_seconds",
    "External classifier round-trip time",
)

receipts_processed_total = Counter(
    "receipts_processed_total",
    "Receipts run through the processing pipeline by outcome",
    ["outcome"],  # auto_processed, partial, manual_review
)

validation_issues_total = Counter(
    "validation_issues_total",
    "Quality validation issues raised",
    ["type", "severity"],
)
