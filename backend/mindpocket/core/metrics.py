"""Prometheus metric helpers."""
from __future__ import annotations

from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "mindpocket_requests_total",
    "HTTP requests processed by the API",
    ("method", "path", "status"),
)

REQUEST_LATENCY = Histogram(
    "mindpocket_request_latency_seconds",
    "Latency of HTTP requests processed by the API",
    ("method", "path"),
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

TASK_RESULTS = Counter(
    "mindpocket_task_results_total",
    "Background worker task outcomes",
    ("task", "status"),
)

CONVERSION_ATTEMPTS = Counter(
    "mindpocket_conversion_attempts_total",
    "Converter strategy attempts grouped by outcome",
    ("strategy", "outcome"),
)

INGEST_SUBMISSIONS = Counter(
    "mindpocket_ingest_submissions_total",
    "Accepted ingest submissions",
    ("source_type", "client_source"),
)


def record_request(method: str, path: str, status_code: int, duration: float) -> None:
    """Record counters and histograms for a processed HTTP request."""

    REQUEST_COUNT.labels(method, path, str(status_code)).inc()
    REQUEST_LATENCY.labels(method, path).observe(duration)


def record_task_result(task_name: str, status: str) -> None:
    TASK_RESULTS.labels(task_name, status).inc()


def record_conversion(strategy: str, outcome: str) -> None:
    """Count one strategy attempt; outcome is ``hit``, ``miss`` or ``error``."""

    CONVERSION_ATTEMPTS.labels(strategy, outcome).inc()


def record_submission(source_type: str, client_source: str) -> None:
    INGEST_SUBMISSIONS.labels(source_type, client_source).inc()
