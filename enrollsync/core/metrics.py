"""Prometheus metric inventory.

Every metric the service exposes is declared here; the modules that own
the behaviour import the metric and increment it at the point of action.

HTTP metrics are fed by MetricsMiddleware.  Reconciliation metrics are
fed by the engine, the bundle cascade and the event bus.  Useful queries:

  rate(enrollment_mutations_total{action="unenroll"}[5m])
    → how fast access is being revoked, per trigger

  enrollment_mutation_failures_total
    → per-course failures absorbed by the loops (should stay flat;
      each increment means a learner is out of sync until the next event)

  histogram_quantile(0.95, rate(reconcile_duration_seconds_bucket[5m]))
    → p95 latency added to the billing subsystem's event delivery
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
# Reconciliation metrics
# ---------------------------------------------------------------------------

ENROLLMENT_MUTATIONS = Counter(
    "enrollment_mutations_total",
    "Enrollment mutations applied through catalog primitives",
    ["trigger", "action"],  # action: enroll|unenroll|cascade|revoke
)

ENROLLMENT_MUTATION_FAILURES = Counter(
    "enrollment_mutation_failures_total",
    "Per-course enrollment mutations that raised and were skipped",
    ["trigger", "action"],
)

RECONCILE_DURATION = Histogram(
    "reconcile_duration_seconds",
    "Wall time of one reconciliation call",
    ["trigger"],
    # Each call is a handful of blocking queries plus one primitive per
    # course; a bulk sweep runs one call per user.
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)

ACCESS_CHECK_CACHE = Counter(
    "access_check_cache_total",
    "Access checker cache lookups by result",
    ["result"],  # "hit" or "miss"
)

EVENT_HANDLER_FAILURES = Counter(
    "event_handler_failures_total",
    "Event handlers that raised and were absorbed by the event bus",
    ["event"],
)
