"""Prometheus metric inventory for course-access-engine.

Every metric the service exports is declared here; the modules that own
the behavior import the object and increment it at the point of action.

HTTP metrics are fed by MetricsMiddleware.  Engine metrics count the
outcomes that matter when something goes wrong in production: a spike in
``key_already_used`` redemptions usually means a key leaked, and a spike in
completion rejections usually means a player build is sending hints before
the watch threshold.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP
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
# Engine
# ---------------------------------------------------------------------------

KEYS_ISSUED = Counter(
    "registration_keys_issued_total",
    "Registration keys created",
    ["product_kind"],  # course|addon
)

KEY_REDEMPTIONS = Counter(
    "key_redemptions_total",
    "Key redemption attempts by outcome",
    # activated|idempotent|not_found|deactivated|already_used|expired
    ["outcome"],
)

EPISODE_COMPLETIONS = Counter(
    "episode_completions_total",
    "Episodes transitioned to completed",
    ["source"],  # mark|hint
)

COMPLETION_REJECTIONS = Counter(
    "completion_rejections_total",
    "Completion requests or hints refused by the completion gate",
    ["source"],  # mark|hint
)

CACHE_OPERATIONS = Counter(
    "cache_operations_total",
    "Catalog cache lookups by result",
    ["operation"],  # hit|miss|set|invalidate
)
