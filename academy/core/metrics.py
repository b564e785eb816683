"""Application metrics using the Prometheus client library.

All metrics are declared here so there is a single inventory of what the
service measures.  Other modules import a metric and increment/observe it
at the point of action.  Counters only go up (rates come from
``rate()`` in PromQL); gauges are snapshots; histograms bucket latencies
so Prometheus can compute percentiles.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Progression metrics
# ---------------------------------------------------------------------------

ACTIVITY_SUBMISSIONS = Counter(
    "activity_submissions_total",
    "Activity submissions by outcome",
    ["result"],  # "accepted", "forbidden", "invalid"
)

LESSONS_COMPLETED = Counter(
    "lessons_completed_total",
    "Lesson completion transitions",
)

COURSES_COMPLETED = Counter(
    "courses_completed_total",
    "Course completion transitions",
)

EXAM_SUBMISSIONS = Counter(
    "final_exam_submissions_total",
    "Final exam submissions by grading status",
    ["grading_status", "passed"],
)

ACHIEVEMENTS_GRANTED = Counter(
    "achievements_granted_total",
    "Achievements granted, by definition title",
    ["title"],
)

CERTIFICATES_ISSUED = Counter(
    "certificates_issued_total",
    "Certificates created (reissues of an existing one are not counted)",
)

# ---------------------------------------------------------------------------
# Webhook metrics
# ---------------------------------------------------------------------------

WEBHOOK_DELIVERIES = Counter(
    "webhook_deliveries_total",
    "Outbound webhook delivery attempts by result",
    ["result"],  # "sent", "failed", "queued", "skipped", "dropped"
)

WEBHOOK_QUEUE_DEPTH = Gauge(
    "webhook_queue_depth",
    "Entries left in per-user webhook queues after the last drain",
)
