"""
Prometheus metrics for the waitlist engine
"""

from prometheus_client import Counter, Histogram, REGISTRY


def _get_or_create(metric_cls, name: str, documentation: str, labelnames=()):
    # Re-imports (reloads, test collection) must not register twice
    try:
        return metric_cls(name, documentation, labelnames)
    except ValueError:
        return REGISTRY._names_to_collectors[name]


REQUEST_COUNT = _get_or_create(
    Counter,
    "app_requests_total",
    "Total requests",
    ["method", "endpoint", "status"]
)
REQUEST_DURATION = _get_or_create(
    Histogram,
    "app_request_duration_seconds",
    "Request duration",
    ["method", "endpoint"]
)

WAITLIST_CONVERSIONS = _get_or_create(
    Counter,
    "waitlist_conversions_total",
    "Waitlist to appointment conversions by outcome",
    ["outcome"]
)
WAITLIST_EXPIRED = _get_or_create(
    Counter,
    "waitlist_entries_expired_total",
    "Waitlist entries transitioned to expired by the sweeper"
)
NOTIFICATION_FAILURES = _get_or_create(
    Counter,
    "waitlist_notification_failures_total",
    "Notifications that could not be emitted",
    ["type"]
)
