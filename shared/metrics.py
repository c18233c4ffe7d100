"""Prometheus metrics for ingestion, goal progress and API observability.

Exposed via /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, make_asgi_app

# Ingestion counters
samples_ingested_total = Counter(
    "samples_ingested_total",
    "Total health samples accepted by the ingestion pipeline",
    ["metric_type", "source"],  # source: manual, google_fit
)

validation_failures_total = Counter(
    "validation_failures_total",
    "Total sample validation failures by reason",
    ["metric_type", "reason"],
)

# Goal / notification counters
goal_completions_total = Counter(
    "goal_completions_total",
    "Goals that transitioned to completed",
    ["goal_type"],
)

notifications_emitted_total = Counter(
    "notifications_emitted_total",
    "Notification emission attempts",
    ["notification_type", "status"],  # status: stored, failed
)

# API counters
api_requests_total = Counter(
    "api_requests_total",
    "Total API requests",
    ["endpoint", "method", "status_code"],
)

# Histograms
relay_api_duration_seconds = Histogram(
    "relay_api_duration_seconds",
    "Duration of Google Fit API calls",
    ["metric_type"],
)

relay_sync_duration_seconds = Histogram(
    "relay_sync_duration_seconds",
    "Duration of a full relay sync (store raw, parse, validate, upsert)",
    ["metric_type"],
)

api_response_duration_seconds = Histogram(
    "api_response_duration_seconds",
    "Duration of API responses",
    ["endpoint"],
)


def create_metrics_app():
    """Create ASGI app for /metrics endpoint."""
    return make_asgi_app()
